"""Wrappers for text and JSON file I/O with consistent encoding (UTF-8)."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

PathLike = Path | str


def read_text(path: PathLike, errors: str = "strict", **kwargs: Any) -> str:
    """Read path as text with UTF-8 encoding. Forwards extra kwargs to Path.read_text."""
    p = path if isinstance(path, Path) else Path(path)
    return p.read_text(encoding="utf-8", errors=errors, **kwargs)


def write_text(path: PathLike, text: str, **kwargs: Any) -> None:
    """Write text to path with UTF-8 encoding. Forwards extra kwargs to Path.write_text."""
    p = path if isinstance(path, Path) else Path(path)
    p.write_text(text, encoding="utf-8", **kwargs)


def read_json(path: PathLike) -> Any:
    """Parse a UTF-8 JSON file. Raises ``OSError`` / ``ValueError`` on failure."""
    return json.loads(read_text(path))


def write_json(path: PathLike, data: Any) -> None:
    """Write *data* as pretty-printed JSON (2-space indent, non-ASCII kept).

    The text goes to a sibling ``.tmp`` file that then replaces *path*, so a
    failed write leaves the previous document in place.
    """
    p = path if isinstance(path, Path) else Path(path)
    text = json.dumps(data, indent=2, ensure_ascii=False)
    tmp = p.with_name(p.name + ".tmp")
    try:
        write_text(tmp, text)
        # os.replace overwrites the destination if it exists (required on Windows)
        os.replace(tmp, p)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
