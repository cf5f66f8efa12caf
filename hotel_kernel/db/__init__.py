"""Database layer for snapshot persistence."""
