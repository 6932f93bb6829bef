"""Immutable data models shared across the engine."""
