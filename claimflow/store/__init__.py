# Store module - claim store port and the in-memory adapter
from .base import ClaimStore, ClaimTransaction
from .memory import InMemoryClaimStore, MemoryTransaction

__all__ = ["ClaimStore", "ClaimTransaction", "InMemoryClaimStore", "MemoryTransaction"]
