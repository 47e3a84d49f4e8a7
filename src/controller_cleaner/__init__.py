"""Controller Cleaner - iterative dead-code elimination for Java sources."""
from .config import __version__

__all__ = ["__version__"]
