"""Build metadata exposed at runtime.

APP_VERSION comes from the APP_VERSION environment variable (set in CI), then
from the installed distribution's metadata, and is "dev" otherwise.
"""

import os
from importlib import metadata

DISTRIBUTION_NAME = "dream-narrator-backend"


def _installed_version() -> str:
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return "dev"


APP_VERSION: str = os.environ.get("APP_VERSION") or _installed_version()
