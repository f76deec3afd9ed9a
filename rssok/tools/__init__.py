"""MCP tools for rssok."""
