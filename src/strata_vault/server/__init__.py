"""MCP server exposing the Strata vault contract."""
