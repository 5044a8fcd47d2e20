"""Bulk submission queue and its run-state persistence."""

from seoimg.queue.bulk import BulkQueue
from seoimg.queue.store import FileRunStateRepository, RunStateRepository, is_stale

__all__ = ["BulkQueue", "FileRunStateRepository", "RunStateRepository", "is_stale"]
