"""Domain packages for the errands backend."""
