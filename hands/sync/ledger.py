"""Metadata store — the ledger of what hands installed in a target project.

Every mutation is a full read-modify-write of the single ledger document.
Writes are atomic (write to a temp file, then rename) so a crash mid-write
never leaves a truncated ledger behind. A mutation that leaves the ledger
unchanged does not touch the file.
"""

from __future__ import annotations

import json
import logging
import tempfile
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path

from hands.models.component import Component
from hands.models.ledger import (
    DependencyEntry,
    Ledger,
    LedgerEntry,
    LedgerOrigin,
)

logger = logging.getLogger(__name__)

METADATA_FILE = ".hands-meta.json"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class MetadataStore:
    """Reads and writes the ledger for one target project."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    @classmethod
    def for_target(cls, target_dir: str | Path) -> MetadataStore:
        """Store at the default location, ``<target>/.claude/.hands-meta.json``."""
        return cls(Path(target_dir) / ".claude" / METADATA_FILE)

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def read(self) -> Ledger:
        """Return a structurally complete ledger.

        A missing, empty or corrupted file yields the default ledger; the
        ``origin`` field tells the cases apart.
        """
        if not self.path.is_file():
            return Ledger(origin=LedgerOrigin.MISSING)

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("Cannot read ledger %s: %s; starting fresh", self.path, e)
            return Ledger(origin=LedgerOrigin.CORRUPT)

        if not raw.strip():
            return Ledger(origin=LedgerOrigin.MISSING)

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt ledger %s: %s; starting fresh", self.path, e)
            return Ledger(origin=LedgerOrigin.CORRUPT)

        if not isinstance(data, dict):
            logger.warning("Ledger %s is not a JSON object; starting fresh", self.path)
            return Ledger(origin=LedgerOrigin.CORRUPT)

        return Ledger.from_dict(data)

    def write(self, ledger: Ledger) -> None:
        """Serialise the complete ledger atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(ledger.to_dict(), indent=2) + "\n"

        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".hands-meta_", suffix=".tmp")
        tmp = Path(tmp_name)
        try:
            with open(fd, "w", encoding="utf-8") as f:
                f.write(content)
            tmp.replace(self.path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug("Ledger saved to %s", self.path)

    def _mutate(self, change: Callable[[Ledger], None]) -> None:
        ledger = self.read()
        before = ledger.to_dict()
        change(ledger)
        if ledger.origin == LedgerOrigin.FILE and ledger.to_dict() == before:
            return
        self.write(ledger)

    # ------------------------------------------------------------------
    # Direct selections
    # ------------------------------------------------------------------

    def track_install(self, component: Component, hash: str | None) -> None:
        """Record a user-selected component, replacing any previous entry.

        If the component was an auto-resolved dependency it is promoted:
        the dependency entry is dropped.
        """
        category, name = component.key

        def change(ledger: Ledger) -> None:
            ledger.components.setdefault(category, {})[name] = LedgerEntry(
                hash=hash,
                installed_at=_now(),
                source_path=str(component.source_path),
            )
            ledger.resolved_deps.get(category, {}).pop(name, None)

        self._mutate(change)

    def track_uninstall(self, category: str, name: str) -> None:
        """Forget a user-selected component."""
        self._mutate(lambda ledger: ledger.components.get(category, {}).pop(name, None))

    # ------------------------------------------------------------------
    # Resolved dependencies
    # ------------------------------------------------------------------

    def track_dependency(
        self,
        category: str,
        name: str,
        hash: str | None,
        source_path: str | Path,
        required_by: Iterable[str],
    ) -> None:
        """Record an auto-resolved dependency.

        The first ``installedAt`` survives repeated calls and the new
        requirers are unioned into the existing ``requiredBy`` set. A name
        that is tracked as a direct selection stays a direct selection.
        """
        required_by = set(required_by)

        def change(ledger: Ledger) -> None:
            if name in ledger.components.get(category, {}):
                logger.debug("%s/%s is a direct selection; not tracking as dependency", category, name)
                return
            section = ledger.resolved_deps.setdefault(category, {})
            existing = section.get(name)
            section[name] = DependencyEntry(
                hash=hash,
                installed_at=existing.installed_at if existing and existing.installed_at else _now(),
                source_path=str(source_path),
                required_by=(existing.required_by if existing else set()) | required_by,
            )

        self._mutate(change)

    def remove_dependency(self, category: str, name: str) -> None:
        """Delete an auto-resolved dependency outright."""
        self._mutate(lambda ledger: ledger.resolved_deps.get(category, {}).pop(name, None))

    def narrow_dependency(self, category: str, name: str, keep: Iterable[str]) -> None:
        """Restrict a dependency's ``requiredBy`` to the requirers in ``keep``.

        Entries that would be left with no requirer are untouched; removing
        those is the orphan collector's job.
        """
        keep = set(keep)

        def change(ledger: Ledger) -> None:
            entry = ledger.resolved_deps.get(category, {}).get(name)
            if entry is None:
                return
            narrowed = entry.required_by & keep
            if narrowed:
                entry.required_by = narrowed

        self._mutate(change)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_tracked_info(self, category: str, name: str) -> LedgerEntry | None:
        return self.read().get(category, name)

    def get_tracked_components(self, category: str) -> dict[str, LedgerEntry]:
        return self.read().components.get(category, {})

    def get_tracked_dependencies(self, category: str) -> dict[str, DependencyEntry]:
        return self.read().resolved_deps.get(category, {})

    def is_tracked(self, category: str, name: str) -> bool:
        return self.get_tracked_info(category, name) is not None
