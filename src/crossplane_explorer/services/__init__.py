"""Service layer for explorer operations."""
