"""Pure exam constants: timing, track ranges, allow-list, pass mark. No UI."""
# Ranges are inclusive question ids.
# Common = Use of English + shared Chemistry/Physics items; each track adds its own block.

EXAM_DURATION_SECONDS = 60 * 60
LOW_TIME_WARNING_SECONDS = 300
PASS_PERCENTAGE = 50

COMMON_ID_RANGES = ((1, 10), (11, 30), (31, 50), (71, 80))
BIOLOGICAL_ID_RANGE = (51, 70)
ENGINEERING_ID_RANGE = (81, 100)

# Registration cutoff (West Africa Time)
REGISTRATION_CLOSES_AT = "2027-01-31T23:59:00+01:00"

# Bounded wait for the used-code lookup before the fail-open policy applies
CODE_CHECK_TIMEOUT_SECONDS = 8.0
CODE_CHECK_FAIL_OPEN = True

RESULT_ID_LENGTH = 12

ALLOWED_CODES = (
    "NV-8821-XP", "NV-4732-LQ", "NV-9105-BR", "NV-2287-KS",
    "NV-5564-DM", "NV-3391-TZ", "NV-7810-GW", "NV-6422-PH",
    "NV-1159-JC", "NV-8246-KV", "NV-3950-RM", "NV-5077-WE",
    "NV-0859-VC", "NV-8846-KC", "NV-3450-MO", "NV-5007-JE",
)
ACCESS_CODE_PATTERN = r"^NV-\d{4}-[A-Z]{2}$"
