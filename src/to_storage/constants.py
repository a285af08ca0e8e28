"""Constants for to-storage."""

# Substituted into the path format for the latest alias
LATEST_TOKEN = "latest"

# Sortable, second-resolution name for direct objects
TIMESTAMP_FORMAT = "%Y.%m.%d.%H.%M.%S"

# Read size used when hashing or copying streams
CHUNK_SIZE = 8192

# Seconds between copy status checks
COPY_POLL_INTERVAL = 0.1

# Downloads larger than this spill from memory to a temp file
SPOOL_MAX_SIZE = 16 * 1024 * 1024

# Settings
CONFIG_DIR = ".to-storage"
CONFIG_FILE = "config.yaml"
CONFIG_ENV_VAR = "TO_STORAGE_CONFIG"
PROVIDER_ENV_VAR = "TO_STORAGE_PROVIDER"
CONNECTION_STRING_ENV_VAR = "AZURE_STORAGE_CONNECTION_STRING"

DEFAULT_PATH_FORMAT = "{0}.txt"
