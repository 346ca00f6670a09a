"""Load-time migration of stored idea records."""

from __future__ import annotations

import logging
from typing import Any

SCHEMA_VERSION = 1

logger = logging.getLogger(__name__)


def _to_v1(data: dict[str, Any]) -> dict[str, Any]:
    # null and missing are both "absent" in v0 records
    if not data.get("status"):
        data["status"] = "draft"
    for key in ("keywords", "chatHistory", "relatedIdeaIds"):
        if data.get(key) is None:
            data[key] = []
    data.setdefault("folderId", None)
    data["title"] = data.get("title") or ""
    data["details"] = data.get("details") or ""
    return data


_STEPS = {0: _to_v1}


def migrate_idea(raw: dict[str, Any]) -> dict[str, Any]:
    """Upgrade a raw idea dict to the current schema version.

    Records written before versioning carry no ``schemaVersion`` and are
    treated as version 0. Returns a new dict; the input is not modified.
    """
    data = dict(raw)
    version = int(data.get("schemaVersion") or 0)
    if version > SCHEMA_VERSION:
        logger.warning("Idea %s has newer schema version %s", data.get("id"), version)
        return data
    while version < SCHEMA_VERSION:
        data = _STEPS[version](data)
        version += 1
    data["schemaVersion"] = version
    return data
