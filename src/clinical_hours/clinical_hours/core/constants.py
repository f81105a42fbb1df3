"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_ALLOTTED_HOURS = 500
REGULAR_HOURS_PER_DAY = 8

CASE_NUMBER_PREFIX = "SRISH"
CASE_NUMBER_ATTEMPTS = 5

HOURS_RETRY_ATTEMPTS = 3

LEAVE_REASON_MIN = 10
LEAVE_REASON_MAX = 1000
REVIEW_COMMENTS_MAX = 500
SESSION_NOTES_MAX = 500
PATIENT_INITIALS_MAX = 5
FINDINGS_TEXT_MAX = 2000

THRESHOLD_MIN_DB = -10
THRESHOLD_MAX_DB = 120
AIR_CONDUCTION_FREQUENCIES = (125, 250, 500, 1000, 2000, 4000, 8000)
BONE_CONDUCTION_FREQUENCIES = (250, 500, 1000, 2000, 4000)

DEFAULT_PAGE_SIZE = 10
DEFAULT_ATTENDANCE_PAGE_SIZE = 31
MAX_PAGE_SIZE = 200
TOP_TEST_TYPES = 6
DASHBOARD_RECENT_LIMIT = 5
PROGRESS_MONTHS = 6
STUDENT_DETAIL_CASES = 10
STUDENT_DETAIL_SESSIONS = 30
STUDENT_DETAIL_LEAVES = 10
PENDING_PAGE_SIZE = 20
PENDING_PREVIEW_LIMIT = 10
