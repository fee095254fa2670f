"""MCP server exposing clipnote tools."""
