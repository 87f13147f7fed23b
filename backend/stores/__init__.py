from .base import (
    RecordStore,
    StoreError,
    FamilyNotFoundError,
    DuplicateFamilyError,
    AuthenticationError,
    LinkRequestNotFoundError,
    LinkTransitionError,
    InvalidLinkRequestError,
)
from .memory import InMemoryStore
from .http import HttpRecordStore

__all__ = [
    "RecordStore",
    "InMemoryStore",
    "HttpRecordStore",  # REST family service client
    # Errors
    "StoreError",
    "FamilyNotFoundError",
    "DuplicateFamilyError",
    "AuthenticationError",
    "LinkRequestNotFoundError",
    "LinkTransitionError",
    "InvalidLinkRequestError",
]
