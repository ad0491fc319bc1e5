"""Packaged default configuration for the Agent Bar URL matcher."""
