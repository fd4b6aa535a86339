"""Helpers shared across cricsync."""
