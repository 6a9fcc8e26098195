"""
Storage backends for the order services.
"""
from .base import Document, OrderStore
from .memory import MemoryOrderStore
from .mongo import MongoOrderStore

__all__ = [
    "Document",
    "OrderStore",
    "MemoryOrderStore",
    "MongoOrderStore"
]
