"""cricsync: Cricbuzz sync jobs with pause-window admission control."""

__version__ = "1.0.0"
