"""tunnelgate: HTTP CONNECT tunnel proxy with optional upstream chaining."""

__version__ = "0.1.0"
