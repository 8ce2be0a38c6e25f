"""
JSON file helpers shared by every persisted state file.
"""

import json
import os
import threading
from pathlib import Path
from typing import Any, Optional, Union

from .exceptions import StateCorruptionError

PathLike = Union[str, Path]


def read_json(path: PathLike) -> Optional[Any]:
    """
    Read a JSON file.

    Returns:
        Parsed content, or None when the file does not exist

    Raises:
        StateCorruptionError: If the file exists but cannot be parsed
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise StateCorruptionError(f"Unreadable state file {path}: {e}") from e


def write_json(path: PathLike, data: Any) -> None:
    """Write JSON atomically (temp file in the same directory, then os.replace)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
    try:
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise


def delete_file(path: PathLike) -> bool:
    """Delete a file. Returns False when it was already gone."""
    try:
        Path(path).unlink()
        return True
    except FileNotFoundError:
        return False
