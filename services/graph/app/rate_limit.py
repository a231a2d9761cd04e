"""
Global slowapi rate limiter.

Imported by social_graph/router.py for per-endpoint limits.  Mounted onto
app.state in main.py so slowapi middleware can find it.

Storage: RATE_LIMIT_STORAGE_URI when set (``memory://`` in tests), otherwise
the service Redis instance.
"""
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=os.getenv(
        "RATE_LIMIT_STORAGE_URI",
        os.getenv("REDIS_URL", "redis://localhost:6379/0"),
    ),
)
