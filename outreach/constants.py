ADMIN = "admin"
ROLES = (ADMIN, "user")

PROGRAM_STATUSES = ("planned", "ongoing", "completed", "cancelled")
CLOSED_PROGRAM_STATUSES = ("completed", "cancelled")

SESSION_STATUSES = ("planned", "ongoing", "completed", "cancelled")

# Share of total sessions required for completion when a program omits it
DEFAULT_COMPLETION_SHARE = 0.8

# Sessions that count as "held" when recomputing stored attendance rates
HELD_SESSION_STATUSES = ("completed", "ongoing")

GENDERS = ("male", "female", "other")

ACTIVE_PARTICIPANT_STATUSES = ("enrolled", "active")

ATTENDANCE_STATUSES = ("registered", "attended", "absent", "late", "left-early")
PRESENT_STATUSES = ("attended", "late", "left-early")

SESSION_PERFORMANCES = ("excellent", "good", "satisfactory", "needs-improvement")
PASSING_PERFORMANCES = ("excellent", "good", "satisfactory")

# (label, first age past the band); ages are whole years
AGE_BANDS = (
    ("0-17", 18),
    ("18-35", 36),
    ("36-55", 56),
    ("56+", None),
)

SPECIAL_STATUS_FLAGS = (
    ("disabled", "is_disabled"),
    ("wounded", "is_wounded"),
    ("separated", "is_separated"),
    ("unaccompanied", "is_unaccompanied"),
)

PARTIAL_COMPLETION_RATE = 50
