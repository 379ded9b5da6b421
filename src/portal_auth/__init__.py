"""Authentication and session-lifecycle core for the client portal."""

__version__ = "0.1.0"
