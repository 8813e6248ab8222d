"""Task Time Manager - tasks, projects and crash-safe timers"""

__version__ = "1.0.0"
