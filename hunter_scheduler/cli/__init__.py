"""CLI command modules for the Hunter scheduler.

Command modules are imported by hunter_scheduler.main; this package
init stays import-free because hunter_scheduler.errors depends on
hunter_scheduler.cli.exit_codes.
"""
