"""User notifications: persistence, fan-out from domain events and realtime push."""
