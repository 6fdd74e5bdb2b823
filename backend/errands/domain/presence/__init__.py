"""In-memory presence tracking for realtime connections."""
