"""
Hosted database access.
"""

from yardpass.datastore.base import (
    RecordNotFoundError,
    RemoteStore,
    StoreError,
    StoreResult,
    StoreTimeoutError,
)
from yardpass.datastore.rest import RestStore

__all__ = [
    "RecordNotFoundError",
    "RemoteStore",
    "RestStore",
    "StoreError",
    "StoreResult",
    "StoreTimeoutError",
]
