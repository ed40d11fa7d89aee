# --- Server ---

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3377


# --- Background cadence (seconds) ---

REPO_POLL_INTERVAL = 10.0  # per repository root status poll
STATS_HEARTBEAT_INTERVAL = 8.0  # transcript re-scan of every known session
SUBPROCESS_TIMEOUT = 5.0  # any git/mise/claude invocation


# --- Caches (seconds) ---

STATS_CACHE_TTL = 10.0  # served as-is unless the transcript grew
MISE_CACHE_TTL = 30.0  # mise config rarely changes mid-session


# --- Transcript ---

SYNTHETIC_MODEL = "<synthetic>"
RESUME_SOURCE = "resume"


# --- Ids ---

ID_LENGTH = 8


# --- Secret masking ---

SECRET_KEY_PATTERN = r"KEY|SECRET|TOKEN|PASSWORD|CREDENTIAL|API"
MASK_MIN_LENGTH = 12
MASK_KEEP_CHARS = 4
