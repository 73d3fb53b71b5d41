"""Hunter Scheduler - autonomous discovery scheduler and job-lease queue."""

__app_name__ = "hunter"
__version__ = "0.1.0"
