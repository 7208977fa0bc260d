from .asyncio_timer import AsyncioTimer
from .manual_timer import ManualTimer

__all__ = ["AsyncioTimer", "ManualTimer"]
