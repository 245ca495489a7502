"""opskills - run operations skills directly or through MCP servers."""

__version__ = "0.1.0"
