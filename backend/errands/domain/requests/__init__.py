"""Delivery request lifecycle: state machine, storage and race-free assignment."""
