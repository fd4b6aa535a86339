"""
Fantasy stats for squad payloads.

Every squad player gets a `credits` price (6.0 to 10.0, driven by role and
team with a random spread) and the `points` the series feed reports for
them, or 0.0.
"""

import random
from typing import Any, Dict, Optional

PLAYER_ID_KEYS = ("playerId", "player_id", "id")
POINTS_KEYS = ("points", "point", "totalPoints", "fantasyPoints")

ROLE_CREDITS = {
    "BAT": 9.0,
    "BOWL": 8.5,
    "AR": 9.5,
    "WK": 8.5,
}
DEFAULT_CREDITS = 8.5
PREMIUM_TEAMS = ("india", "australia", "england")
PREMIUM_BONUS = 0.5
MIN_CREDITS = 6.0
MAX_CREDITS = 10.0


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    try:
        float(value)
    except (TypeError, ValueError):
        return False
    return True


def extract_series_points(payload: Dict[str, Any]) -> Dict[str, float]:
    """Index every player id found under payload['seriesPoints'] to its points."""
    series_points = payload.get("seriesPoints") if isinstance(payload, dict) else None
    index: Dict[str, float] = {}

    def walk(item: Any) -> None:
        if isinstance(item, dict):
            player_id = next((item[key] for key in PLAYER_ID_KEYS if item.get(key) is not None), None)
            points = next((item[key] for key in POINTS_KEYS if item.get(key) is not None), None)
            if player_id is not None and _is_number(points):
                index[str(player_id)] = float(points)
            children = item.values()
        elif isinstance(item, list):
            children = item
        else:
            return

        for child in children:
            if isinstance(child, (dict, list)):
                walk(child)

    walk(series_points)
    return index


def normalize_role(role: str) -> str:
    """Map Cricbuzz role labels to BAT/BOWL/AR/WK; unknown roles pass through."""
    role = (role or "").strip().upper()
    if "ALLROUND" in role:
        return "AR"
    if "WK" in role:
        return "WK"
    if "BOWL" in role:
        return "BOWL"
    if "BAT" in role:
        return "BAT"
    return role


def generate_fantasy_stats(
    player: Dict[str, Any],
    series_points: Dict[str, float],
    rng: Optional[random.Random] = None,
) -> Dict[str, float]:
    rng = rng or random.Random()

    credits = ROLE_CREDITS.get(normalize_role(str(player.get("role") or "")), DEFAULT_CREDITS)
    team = str(player.get("teamName") or player.get("teamname") or "").lower()
    if any(name in team for name in PREMIUM_TEAMS):
        credits += PREMIUM_BONUS

    credits += rng.random() - 0.5
    credits = max(MIN_CREDITS, min(MAX_CREDITS, credits))

    return {
        "credits": round(credits, 2),
        "points": float(series_points.get(str(player.get("id", "")), 0.0)),
    }


def _enrich_players(players: list, series_points: Dict[str, float], rng: random.Random) -> list:
    enriched = []
    for entry in players:
        if not isinstance(entry, dict):
            enriched.append(entry)
            continue

        # Grouped rosters: {"category": "squad", "player": [...]}
        if isinstance(entry.get("player"), list):
            category = str(entry.get("category") or "").lower()
            if category in ("", "squad"):
                entry = {**entry, "player": _enrich_players(entry["player"], series_points, rng)}
            enriched.append(entry)
            continue

        enriched.append({**entry, **generate_fantasy_stats(entry, series_points, rng)})
    return enriched


def append_fantasy_stats(
    payload: Dict[str, Any],
    series_points: Dict[str, float],
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    Return a copy of a squads payload with credits/points on every player.

    Team blocks are read at the top level and under a `squads` wrapper;
    a team block is any dict with a `players` list.
    """
    rng = rng or random.Random()

    def enrich_teams(block: Dict[str, Any]) -> Dict[str, Any]:
        result = dict(block)
        for key, team in block.items():
            if isinstance(team, dict) and isinstance(team.get("players"), list):
                result[key] = {**team, "players": _enrich_players(team["players"], series_points, rng)}
        return result

    enriched = enrich_teams(payload)
    if isinstance(payload.get("squads"), dict):
        enriched["squads"] = enrich_teams(payload["squads"])
    return enriched
