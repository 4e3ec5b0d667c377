"""Asset-to-device resolution over the platform relation graph."""

from __future__ import annotations

import logging
from typing import Any

from lampctl.core.errors import ResolveError, TransportError
from lampctl.transports.base import DevicePlatform

LOGGER = logging.getLogger(__name__)

RELATION_TYPE = "Contains"
DEVICE_ENTITY = "DEVICE"


def relation_query(
    asset_id: str,
    *,
    root_type: str = "ASSET",
    max_level: int = 1,
    fetch_last_level_only: bool = False,
) -> dict[str, Any]:
    """Build the outgoing ``Contains`` relation query rooted at ``asset_id``.

    ``max_level`` is the hop depth; with ``fetch_last_level_only`` only the
    relations found at the deepest level are returned.
    """
    return {
        "parameters": {
            "rootId": asset_id,
            "rootType": root_type,
            "direction": "FROM",
            "relationTypeGroup": "COMMON",
            "maxLevel": max_level,
            "fetchLastLevelOnly": fetch_last_level_only,
        },
        "filters": [
            {
                "relationType": RELATION_TYPE,
                "entityTypes": [DEVICE_ENTITY],
                "negate": False,
            }
        ],
    }


async def resolve_devices(
    platform: DevicePlatform,
    asset_id: str,
    token: str,
    *,
    max_level: int = 1,
    fetch_last_level_only: bool = False,
) -> list[str]:
    query = relation_query(
        asset_id,
        max_level=max_level,
        fetch_last_level_only=fetch_last_level_only,
    )
    try:
        relations = await platform.find_relations(query, token)
    except TransportError as exc:
        raise ResolveError(f"Could not resolve devices for asset {asset_id}: {exc}") from exc

    device_ids: list[str] = []
    for relation in relations:
        target = relation.get("to") if isinstance(relation, dict) else None
        if not isinstance(target, dict) or target.get("entityType") != DEVICE_ENTITY:
            continue
        device_id = target.get("id")
        if device_id:
            device_ids.append(str(device_id))

    LOGGER.info("Asset %s contains devices: %s", asset_id, ", ".join(device_ids) or "<none>")
    return device_ids
