"""campuscache offline cache system.

This package provides a scoped key-value cache (SQLite or in-memory) for:
- Announcement feed (paginated, merge/append, refresh throttling)
- Attendance
- Timetable and subject names
- Subjects
- Academic sessions
- Basic profile and personal info
- Report card
- Fee receipts
- Build-change invalidation
"""

from cache.database import CacheDatabase, init_cache
from cache.memory_store import MemoryStore
from cache.store import CacheStore, ScopeKey
from cache.freshness import NEVER_EXPIRES, TimedCacheEntry, age_string, is_fresh
from cache.domain_cache import CacheResult, TimedCache
from cache.feed_cache import FeedCacheService
from cache.attendance_cache import AttendanceCacheService
from cache.timetable_cache import TimetableCacheService
from cache.subjects_cache import SubjectsCacheService
from cache.session_cache import SessionCacheService
from cache.profile_cache import ProfileCacheService
from cache.report_card_cache import ReportCardCacheService
from cache.fee_receipts_cache import FeeReceiptsCacheService
from cache.invalidation import BuildVersionTracker
from cache.container import CacheServices, create_backend

__all__ = [
    "CacheDatabase",
    "init_cache",
    "MemoryStore",
    "CacheStore",
    "ScopeKey",
    # Freshness policy
    "NEVER_EXPIRES",
    "TimedCacheEntry",
    "age_string",
    "is_fresh",
    "CacheResult",
    "TimedCache",
    # Domain services
    "FeedCacheService",
    "AttendanceCacheService",
    "TimetableCacheService",
    "SubjectsCacheService",
    "SessionCacheService",
    "ProfileCacheService",
    "ReportCardCacheService",
    "FeeReceiptsCacheService",
    # Invalidation
    "BuildVersionTracker",
    "CacheServices",
    "create_backend",
]
