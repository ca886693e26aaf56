"""Shared helpers: logging, constants and the exception hierarchy."""
