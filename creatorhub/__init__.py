"""Creatorhub messaging service: direct messages between creators and admins."""

__version__ = "1.0.0"
