"""MCP tool implementations that read board metadata through the cache."""
