"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from .enums import Role

DEFAULT_CACHE_TTL_SECONDS = 600
DEFAULT_CACHE_MAX_SIZE = 256

DEFAULT_ABSENTEE_LIMIT = 20
MAX_ABSENTEE_LIMIT = 100
MAX_PAGE_SIZE = 500

MIN_ACADEMIC_YEAR = 2000
MAX_ACADEMIC_YEAR = 2100

ATTENDANCE_WRITER_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.DEPARTMENT_HEAD, Role.INSTRUCTOR})
CALENDAR_WRITER_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN})
CALENDAR_READER_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.DEPARTMENT_HEAD, Role.INSTRUCTOR})

# Window used by range views when the caller sends no start/end.
DEFAULT_RANGE_DAYS = 30
