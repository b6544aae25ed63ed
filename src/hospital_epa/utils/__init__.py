"""Utility helpers shared across modules."""
