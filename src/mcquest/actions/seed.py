"""Default action catalog: the event types the server plugin reports."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.db.dialect import dialect_insert
from mcquest.db.models import Action

logger = structlog.get_logger()


def _param(type_: str, description: str) -> dict[str, Any]:
    return {"type": type_, "description": description, "required": False}


DEFAULT_ACTIONS: list[dict[str, Any]] = [
    {
        "name": "MINE_BLOCK",
        "description": "Mine a specific block",
        "parameters": {"block": _param("string", "Block id (e.g. diamond_ore, iron_ore, stone)")},
    },
    {
        "name": "KILL_MOBS",
        "description": "Kill mobs",
        "parameters": {"mob": _param("string", "Mob type (e.g. zombie, skeleton, creeper, enderman)")},
    },
    {
        "name": "KILL_PLAYER",
        "description": "Kill a player in PvP",
        "parameters": {"player": _param("string", "Target player name (any player when omitted)")},
    },
    {
        "name": "PLACE_BLOCK",
        "description": "Place a specific block",
        "parameters": {"block": _param("string", "Block id to place (e.g. cobblestone, oak_planks)")},
    },
    {
        "name": "BUILD_HOUSE",
        "description": "Build a house (structure detected by the plugin)",
        "parameters": {
            "minSize": _param("number", "Minimum structure size in blocks"),
            "materials": _param("array", "Allowed materials"),
        },
    },
    {
        "name": "TRAVEL_TO",
        "description": "Travel to a destination or cover a distance",
        "parameters": {
            "destination": _param("string", "Destination (e.g. nether, end, coordinates)"),
            "distance": _param("number", "Distance in blocks"),
        },
    },
    {
        "name": "PLACE_FLAG",
        "description": "Place a flag (zone capture, events)",
        "parameters": {
            "zone": _param("string", "Zone identifier"),
            "team": _param("string", "Team placing the flag"),
        },
    },
]


async def seed_actions(db: AsyncSession) -> int:
    """Insert missing default actions; existing rows are left untouched. Returns rows inserted."""
    inserted = 0
    for action_data in DEFAULT_ACTIONS:
        stmt = dialect_insert(db, Action).values(**action_data).on_conflict_do_nothing(index_elements=["name"])
        result = await db.execute(stmt)
        inserted += result.rowcount
    await db.commit()
    logger.info("actions_seeded", inserted=inserted, total=len(DEFAULT_ACTIONS))
    return inserted
