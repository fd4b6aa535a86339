"""API clients for cricsync."""

from cricsync.clients.cricbuzz import ApiResponse, CricbuzzClient

__all__ = ["ApiResponse", "CricbuzzClient"]
