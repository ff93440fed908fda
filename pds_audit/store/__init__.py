"""Data-store collaborator interface and the in-memory adapter."""
