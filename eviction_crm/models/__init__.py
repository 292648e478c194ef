"""Database access and data schemas."""
