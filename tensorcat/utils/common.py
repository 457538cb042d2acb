import os
from typing import Optional


def env_string(key: str, default: Optional[str]) -> Optional[str]:
    if key in os.environ:
        return os.environ[key]
    return default
