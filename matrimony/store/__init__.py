from matrimony.store.base import QuotaStore, UserTransaction
from matrimony.store.memory import InMemoryQuotaStore
from matrimony.store.sql import SqlQuotaStore

__all__ = [
    "InMemoryQuotaStore",
    "QuotaStore",
    "SqlQuotaStore",
    "UserTransaction",
]
