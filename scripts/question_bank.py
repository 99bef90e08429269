"""Load, merge and write the JSON question bank served to the quiz UI.

The bank is a plain JSON array of ``{"question", "options", "answer"}``
objects. Appending never de-duplicates: new records go after whatever valid
array already sits at the destination. A destination that cannot be read as
a JSON array is treated as empty so an append run never fails on it.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List


def load_existing_bank(path: Path) -> List[Any]:
    if not path.exists():
        return []
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logging.warning("Ignoring unreadable question bank %s: %s", path, exc)
        return []
    if not isinstance(payload, list):
        logging.warning("Ignoring question bank %s: top level is %s, not a list", path, type(payload).__name__)
        return []
    return payload


def merge_bank(existing: Iterable[Any], new_records: Iterable[Any]) -> List[Any]:
    """Return ``existing`` followed by ``new_records``; neither input is modified."""
    merged = list(existing)
    merged.extend(record.to_dict() for record in new_records)
    return merged


def build_bank(path: Path, new_records: Iterable[Any], append: bool = False) -> List[Any]:
    if not append:
        return merge_bank([], new_records)
    existing = load_existing_bank(path)
    logging.debug("Appending to %d existing record(s) in %s", len(existing), path)
    return merge_bank(existing, new_records)


def serialise_bank(records: Iterable[Any]) -> str:
    return json.dumps(list(records), ensure_ascii=False, indent=2) + "\n"


def write_bank(path: Path, records: Iterable[Any]) -> None:
    # The old bank is only ever replaced by a fully serialised file.
    text = serialise_bank(records)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        tmp_path.write_text(text, encoding="utf-8")
        tmp_path.replace(path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
    logging.debug("Wrote %d bytes to %s", len(text.encode("utf-8")), path)
