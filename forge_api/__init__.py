"""Forge board backend: projects, ordered task buckets, and invitations."""
