"""
netlayout: force-directed graph layout with Barnes-Hut physics, hierarchical
levels and reversible clustering.
"""
from importlib.metadata import version, PackageNotFoundError

from netlayout.network import Network

try:
    __version__ = version("netlayout")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = ["Network", "__version__"]
