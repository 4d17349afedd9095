"""bashmcp: safe bash execution for AI assistants over MCP."""

__version__ = "0.1.0"
