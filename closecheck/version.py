# Version information, reported by `closecheck --version`.

VERSION = "v0.1.0"

# Overwritten by release packaging
BUILD_DATE = "unknown"
GIT_COMMIT = "unknown"
