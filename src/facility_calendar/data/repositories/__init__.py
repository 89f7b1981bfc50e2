"""HTTP repositories for calendar activities."""

from __future__ import annotations

from .activities import ActivityRepository, MutationRequest

__all__ = ["ActivityRepository", "MutationRequest"]
