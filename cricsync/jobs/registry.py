"""Metadata for every job shown on the admin dashboard."""

from typing import Dict

JOBS: Dict[str, Dict[str, str]] = {
    "live-matches": {
        "label": "Live Matches",
        "description": "Mirrors the live matches feed into the matches collection.",
        "accent": "emerald",
    },
    "match-overs": {
        "label": "Match Overs",
        "description": "Over-by-over summaries for live matches.",
        "accent": "sky",
    },
    "scorecards": {
        "label": "Scorecards",
        "description": "Full scorecards for live matches, refreshed every minute.",
        "accent": "indigo",
    },
    "commentary": {
        "label": "Commentary",
        "description": "Ball-by-ball commentary merged into stored feeds.",
        "accent": "amber",
    },
    "squads": {
        "label": "Squads",
        "description": "Team rosters for matches starting within a day.",
        "accent": "rose",
    },
    "squads-playing-xi": {
        "label": "Playing XI",
        "description": "Squad refresh at the toss until both playing XIs are announced.",
        "accent": "fuchsia",
    },
    "recent-matches": {
        "label": "Recent Matches",
        "description": "Marks matches past their end date as complete.",
        "accent": "teal",
    },
    "logs-cleanup": {
        "label": "Logs Cleanup",
        "description": "Prunes sync and API request logs past the retention window.",
        "accent": "slate",
    },
}


def is_known_job(job_key: str) -> bool:
    return job_key in JOBS
