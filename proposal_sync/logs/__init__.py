"""Logging utilities for proposal sync."""

from .activity import JsonlSyncLog, LoggingSyncLog, SyncLog, fetch_sync_entries

__all__ = ["JsonlSyncLog", "LoggingSyncLog", "SyncLog", "fetch_sync_entries"]
