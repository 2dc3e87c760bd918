"""Collaborators of the stream sessions: admission control, broadcast, settings."""
