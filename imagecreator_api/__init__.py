"""HTTP API and MCP server for the image creator."""
