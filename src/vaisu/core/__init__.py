"""Core infrastructure: configuration, logging, middleware and errors."""
