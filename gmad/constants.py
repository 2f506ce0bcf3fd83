# Magic and version
MAGIC = b"GMAD"  # 4 bytes: "GMAD"

VERSION = 3
SUPPORTED_VERSIONS = frozenset({1, 2, 3})

# Versions from this one on carry the required-content string list
REQUIRED_CONTENT_MIN_VERSION = 2


DEFAULT_ADDON_VERSION = 1

# Integer field ranges
U32_MAX = 0xFFFFFFFF
U64_MAX = 0xFFFFFFFFFFFFFFFF
I32_MIN = -(1 << 31)
I32_MAX = (1 << 31) - 1

# Stored in a checksum field by writers that do not compute one
NO_CHECKSUM = 0
