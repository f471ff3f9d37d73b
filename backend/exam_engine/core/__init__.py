"""Core infrastructure: configuration, logging, errors, security gates."""
