from __future__ import annotations

from .range_cache import RangeCache

__all__ = ["RangeCache"]
