"""Infrastructure adapters: Postgres, Redis, auth and the unit of work."""
