"""Direct messages and the realtime relay."""
