"""MCP (stdio) front end for the command tracker workspace."""
