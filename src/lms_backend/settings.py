import os
import threading
from typing import List


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class BackendSettings:
    _instance = None
    _lock = threading.Lock()

    def __init__(self):
        self.DEBUG_MODE = os.environ.get("DEBUG_MODE", "development")
        # Permission engine settings
        self.PERMISSION_EXCLUDED_ROLE_CLASSES = _split(os.environ.get("PERMISSION_EXCLUDED_ROLE_CLASSES", ""))
        self.PERMISSION_RULES_FILE = os.environ.get("PERMISSION_RULES_FILE", None)  # YAML rule definitions
        self.PERMISSION_CACHE_TTL = int(os.environ.get("PERMISSION_CACHE_TTL", "300"))  # 0 disables caching
        self.PERMISSION_CACHE_BACKEND = os.environ.get("PERMISSION_CACHE_BACKEND", "memory").lower()
        # Ownership resolvers
        self.OWNERSHIP_INCLUDE_COURSE_INSTRUCTOR = os.environ.get(
            "OWNERSHIP_INCLUDE_COURSE_INSTRUCTOR", "false"
        ).lower() in ["true", "1", "yes", "on"]
        # Redis backend of the rule cache
        self.REDIS_HOST = os.environ.get("REDIS_HOST", "localhost")
        self.REDIS_PORT = int(os.environ.get("REDIS_PORT", "6379"))
        self.REDIS_PASSWORD = os.environ.get("REDIS_PASSWORD", "")
        self.REDIS_DB = int(os.environ.get("REDIS_DB", "0"))

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(BackendSettings, cls).__new__(cls)
        return cls._instance

settings = BackendSettings()
