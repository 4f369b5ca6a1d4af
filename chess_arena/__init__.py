"""Chess match and tournament server."""

__version__ = "1.0.0"
