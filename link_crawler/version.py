"""Central versioning constants for the crawler."""

__all__ = ["__version__"]

#: Semantic version of this codebase (bump using SemVer).
__version__ = "0.3.0"
