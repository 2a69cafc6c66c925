"""mcphub: MCP server management backend with semantic tool search."""

__version__ = "0.1.0"
