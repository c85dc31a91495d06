"""Admin endpoints gated by the shared dev key."""

from .router import router
from .security import is_valid_key

__all__ = ["is_valid_key", "router"]
