"""Firebase MCP server: Firestore, Authentication and Storage as MCP tools."""

__version__ = "0.6.0"
