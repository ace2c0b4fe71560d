"""Maintenance tasks that run outside the job queue."""

from voicequeue.maintenance.cleanup import AdmissionGate, ArtifactCleanupService, CleanupResult

__all__ = ["AdmissionGate", "ArtifactCleanupService", "CleanupResult"]
