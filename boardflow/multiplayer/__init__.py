"""
Multiplayer - Client transport adapter and authoritative master.
"""

from .client import Multiplayer, Store, WHITELISTED_ACTIONS
from .master import Master, UpdateResult, redact_log
from .storage import InMemoryStorage, StoredGame

__all__ = [
    "Multiplayer",
    "Store",
    "WHITELISTED_ACTIONS",
    "Master",
    "UpdateResult",
    "redact_log",
    "InMemoryStorage",
    "StoredGame",
]
