from .in_memory import InMemoryEventFeed

__all__ = ["InMemoryEventFeed"]
