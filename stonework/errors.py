"""
Exception types raised by stonework.

All errors derive from `StoneworkError`. Errors caused by bad input are also
`ValueError`s, so callers that only care about "bad input" can catch the
builtin. `NoPathFound` is the one condition a caller is expected to recover
from (by picking other endpoints).
"""


class StoneworkError(Exception):
    """Base class for stonework errors."""


class OutOfBounds(StoneworkError, IndexError, ValueError):
    """A coordinate or node id lies outside the grid extent."""


class InvalidConnectivity(StoneworkError, ValueError):
    """Connectivity level is not valid for the grid dimensionality."""


class ShapeMismatch(StoneworkError, ValueError):
    """Node-weight array shape differs from the grid shape."""


class InvalidEndpoint(StoneworkError, ValueError):
    """A path endpoint is out of bounds or lies on a background (stone) cell."""


class NoPathFound(StoneworkError):
    """Source and target lie in disconnected foreground components."""

    def __init__(self, source: int, target: int):
        self.source = source
        self.target = target
        super().__init__(f"No path between node {source} and node {target}")


class PathTimeout(StoneworkError, TimeoutError):
    """Shortest-path solve exceeded its time budget."""
