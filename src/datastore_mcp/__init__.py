"""Uniform MCP tools over SQL, HTTP, document, object-storage and FTP backends."""

__version__ = "0.3.0"
