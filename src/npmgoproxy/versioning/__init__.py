"""Version normalization, ordering and npm range resolution."""

from .semver import compare, is_valid, major, normalize, sort_key
from .resolver import pick_matching

__all__ = ["compare", "is_valid", "major", "normalize", "sort_key", "pick_matching"]
