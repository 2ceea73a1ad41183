"""Load the node list from a targets file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Union

from node_health.models import Node


def load_nodes(path: Union[str, Path]) -> List[Node]:
    targets_path = Path(path)
    if not targets_path.exists():
        raise FileNotFoundError(f"Missing targets file at {targets_path}")

    with targets_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)

    if isinstance(payload, dict):
        payload = payload.get("nodes", [payload])

    if not isinstance(payload, list):
        raise ValueError(f"{targets_path.name} must contain a list of node entries")

    nodes = [Node.from_dict(entry) for entry in payload]

    seen = set()
    for node in nodes:
        if node.id in seen:
            raise ValueError(f"Duplicate node id {node.id!r}")
        seen.add(node.id)
    return nodes
