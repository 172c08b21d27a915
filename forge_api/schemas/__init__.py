"""Request/response schemas for the public API."""
