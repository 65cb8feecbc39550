"""Shared utilities: logging, exceptions, identifiers and dates."""
