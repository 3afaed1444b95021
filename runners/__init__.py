"""
Runners domain package.

Public API:
- Runner, build_history
- is_present (heartbeat + location freshness)
"""
from .models import Runner, build_history
from .presence import is_present

__all__ = ["Runner", "build_history", "is_present"]
