from .in_memory import InMemoryLedgerClient

__all__ = ["InMemoryLedgerClient"]
