"""Peer-mentorship booking and session-lifecycle backend."""
