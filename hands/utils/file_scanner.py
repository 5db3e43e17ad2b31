"""File scanner — list component files and compute content hashes.

Directory hashes depend only on (relative path, content) pairs, never on
the order the filesystem returns entries in, and skip the skill manifest
so manifest edits never register as drift.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"


def scan_component_files(root: Path, exclude: tuple[str, ...] = ()) -> list[str]:
    """Recursively list files under ``root`` as sorted relative POSIX paths.

    Any file or directory whose name is in ``exclude`` is skipped.
    """
    files = []
    for item in root.rglob("*"):
        relative = item.relative_to(root)
        if any(part in exclude for part in relative.parts):
            continue
        if item.is_file():
            files.append(relative.as_posix())
    return sorted(files)


def compute_hash(content: Any) -> str:
    """Hash a string, bytes, or JSON-serialisable object.

    Objects are serialised with sorted keys so equal configs hash equally
    regardless of key order.
    """
    if isinstance(content, bytes):
        data = content
    elif isinstance(content, str):
        data = content.encode("utf-8")
    else:
        data = json.dumps(content, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def compute_file_hash(path: Path) -> str | None:
    """Hash a file's bytes, or None if it cannot be read."""
    try:
        return compute_hash(Path(path).read_bytes())
    except OSError:
        return None


def compute_directory_hash(path: Path) -> str | None:
    """Hash every file under a directory except the manifest.

    Each file contributes ``relpath + NUL + content`` to one running digest,
    in lexicographic order of relative path. A plain file is hashed as
    itself. Returns None if the path is missing or unreadable.
    """
    path = Path(path)
    if path.is_file():
        return compute_file_hash(path)
    if not path.is_dir():
        return None

    digest = hashlib.sha256()
    try:
        for relative in scan_component_files(path, exclude=(MANIFEST_FILE,)):
            digest.update(relative.encode("utf-8"))
            digest.update(b"\0")
            digest.update((path / relative).read_bytes())
    except OSError as e:
        logger.debug("Cannot hash %s: %s", path, e)
        return None
    return digest.hexdigest()
