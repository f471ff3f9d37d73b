"""Shared request utilities."""
