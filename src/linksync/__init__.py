"""linksync - keeps bidirectional link documents consistent in a document store."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("linksync")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["__version__"]
