"""Engine-wide constants.

This module defines constants used throughout the engine
to avoid magic numbers and ensure consistency.
"""

# Access bits
ACCESS_READ = 1
ACCESS_WRITE = 2
ACCESS_UPDATE = 4
ACCESS_DELETE = 8

# Resource identifiers: dot separated segments of at least two characters.
# Braces allow route placeholders such as "{widget_id}".
# Accepts the same strings as ^([a-z0-9_\-{}]{2,}\.*)+$ without nested
# quantifiers, which backtrack exponentially in Python's re.
RESOURCE_ID_PATTERN = r"^[a-z0-9_\-{}]{2,}(\.+[a-z0-9_\-{}]{2,})*\.*$"

# Cache namespaces and TTLs
ROLE_CACHE_NAMESPACE = "role"
DEFAULT_ROLE_NAME_CACHE_TTL = 600  # 10 minutes
DEFAULT_USER_ROLES_CACHE_TTL = 1800  # 30 minutes

# String field lengths
MAX_ID_LENGTH = 64
MAX_USER_ID_LENGTH = 512
MAX_NAME_LENGTH = 512
MAX_DESCRIPTION_LENGTH = 512
MAX_RESOURCE_ID_LENGTH = 1024
MAX_RESOURCE_PATTERN_LENGTH = 512
MAX_USER_TYPE_LENGTH = 64
MAX_RESOURCE_TYPE_LENGTH = 64

# Resource type used by the endpoint registration hook
ENDPOINT_RESOURCE_TYPE = "endpoint"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
