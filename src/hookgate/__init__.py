"""hookgate: hook interception engine for agent tool calls."""

__version__ = "0.1.0"
