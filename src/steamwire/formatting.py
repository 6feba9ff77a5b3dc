"""Plain-text rendering of query results for the terminal."""

from __future__ import annotations

import math
from typing import Any

_SECONDS_PER_MINUTE = 60
_SECONDS_PER_HOUR = 3600

_SERVER_TYPES = {"d": "dedicated", "l": "listen", "p": "SourceTV"}
_ENVIRONMENTS = {"l": "Linux", "w": "Windows", "m": "macOS", "o": "macOS"}

# (key, label) pairs in display order
_INFO_FIELDS = [
    ("name", "Name"),
    ("map", "Map"),
    ("game", "Game"),
    ("folder", "Folder"),
    ("app_id", "App ID"),
    ("version", "Version"),
    ("server_type", "Type"),
    ("environment", "OS"),
    ("password", "Password"),
    ("vac", "VAC"),
    ("port", "Game port"),
    ("steam_id", "Steam ID"),
    ("keywords", "Keywords"),
]


def format_duration(seconds: float) -> str:
    """Format a connection time as H:MM:SS, or "-" if it is not a number."""
    if not math.isfinite(seconds):
        return "-"
    total = max(int(seconds), 0)
    hours, rest = divmod(total, _SECONDS_PER_HOUR)
    minutes, secs = divmod(rest, _SECONDS_PER_MINUTE)
    return f"{hours}:{minutes:02d}:{secs:02d}"


def format_info(info: dict[str, Any]) -> str:
    """Render A2S_INFO fields as aligned 'Label: value' lines."""
    rows: list[tuple[str, str]] = []
    for key, label in _INFO_FIELDS:
        if key not in info:
            continue
        value = info[key]
        if key == "server_type":
            value = _SERVER_TYPES.get(value, value)
        elif key == "environment":
            value = _ENVIRONMENTS.get(value, value)
        elif isinstance(value, bool):
            value = "yes" if value else "no"
        rows.append((label, str(value)))

    if "players" in info:
        players = f"{info['players']}/{info.get('max_players', '?')}"
        if info.get("bots"):
            players += f" ({info['bots']} bots)"
        rows.insert(2, ("Players", players))

    width = max((len(label) for label, _ in rows), default=0)
    return "\n".join(f"{label + ':':<{width + 1}} {value}" for label, value in rows)


def format_players(players: list[dict[str, Any]]) -> str:
    """Render a player list as a table sorted by score."""
    if not players:
        return "No players online."

    ordered = sorted(players, key=lambda p: p["score"], reverse=True)
    name_width = max(len("Name"), *(len(p["name"]) for p in ordered))
    lines = [f"{'Name':<{name_width}}  {'Score':>5}  {'Time':>8}"]
    lines.extend(
        f"{p['name']:<{name_width}}  {p['score']:>5}  "
        f"{format_duration(p['duration']):>8}"
        for p in ordered
    )
    return "\n".join(lines)


def format_rules(rules: dict[str, str]) -> str:
    """Render server rules as 'name = value' lines sorted by name."""
    if not rules:
        return "No rules reported."
    width = max(len(name) for name in rules)
    return "\n".join(f"{name:<{width}} = {rules[name]}" for name in sorted(rules))
