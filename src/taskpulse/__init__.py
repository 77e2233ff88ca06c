"""TaskPulse - ClickUp task dashboard backend with change log and daily review report"""

__version__ = "0.1.0"
