from .periodic import CleanupSweeper, PeriodicTask, RecordingAvailabilityWatcher

__all__ = ["CleanupSweeper", "PeriodicTask", "RecordingAvailabilityWatcher"]
