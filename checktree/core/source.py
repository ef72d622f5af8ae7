from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_records(path: Path) -> Any:
    """Read nested tree records from a YAML or JSON file.

    JSON documents are valid YAML, so one loader covers both. A mapping with
    a top-level ``nodes`` list is unwrapped to that list.
    """
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return []
    if isinstance(data, dict) and isinstance(data.get("nodes"), list):
        return data["nodes"]
    return data
