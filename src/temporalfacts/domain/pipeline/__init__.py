"""Batch pipelines built on :class:`~.coordinator.BatchCoordinator`."""
