# runtime settings, read once from the environment
import os

DB_PATH = os.getenv("PULSE_DB_PATH", "data/pulse.sqlite")

DEBUG = bool(os.getenv("DEBUG"))
LOG_LEVEL = os.getenv("PULSE_LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()

APP_TITLE = "Terminal Pulse"

# lock an account after this many consecutive bad passwords
MAX_FAILED_LOGIN_ATTEMPTS = 3

# default resolution deadline for newly created tickets
SLA_TARGET_HOURS = 4

# number of days of metrics seeded before today
METRICS_HISTORY_DAYS = 30
