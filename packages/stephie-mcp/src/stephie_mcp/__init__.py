"""Monday.com board metadata cache and MCP tool server."""

__version__ = "1.0.0"
