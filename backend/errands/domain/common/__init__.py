"""Shared domain primitives: error taxonomy and the in-process event bus."""
