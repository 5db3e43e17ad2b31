"""Orphan collection — dependencies nothing retained still needs.

After a sync the retained skill set is the direct selection plus every
auto-resolved skill dependency that is still (transitively) required by
it. A resolved dependency whose ``requiredBy`` no longer intersects the
retained set is an orphan candidate; removing it needs confirmation, and
declining leaves it tracked so it is offered again next run.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from hands.models.ledger import DEPENDENCY_SECTIONS, DependencyEntry, Ledger
from hands.sync import merger
from hands.sync.ledger import MetadataStore

logger = logging.getLogger(__name__)

# Where each dependency category lands in the target project
_TARGETS = {
    "agents": lambda name: Path(".claude") / "agents" / f"{name}.md",
    "skills": lambda name: Path(".claude") / "skills" / name,
}


@dataclass
class Orphan:
    category: str
    name: str
    entry: DependencyEntry

    @property
    def label(self) -> str:
        kind = {"mcpServers": "MCP server", "agents": "Agent", "skills": "Skill"}.get(
            self.category, self.category
        )
        return f'{kind} "{self.name}"'


@dataclass
class OrphanCleanup:
    removed: list[Orphan] = field(default_factory=list)
    kept: list[Orphan] = field(default_factory=list)


def retained_skills(ledger: Ledger, selected_skills: Iterable[str]) -> set[str]:
    """Direct selection plus resolved skill deps still required by it, to a fixed point."""
    retained = set(selected_skills)
    resolved = ledger.resolved_deps.get("skills", {})
    changed = True
    while changed:
        changed = False
        for name, entry in resolved.items():
            if name not in retained and entry.required_by & retained:
                retained.add(name)
                changed = True
    return retained


def find_orphans(ledger: Ledger, retained: set[str]) -> list[Orphan]:
    """Resolved dependencies whose requirers are all gone."""
    orphans = []
    for category in DEPENDENCY_SECTIONS:
        for name, entry in ledger.resolved_deps.get(category, {}).items():
            if not entry.required_by & retained:
                orphans.append(Orphan(category, name, entry))
    return orphans


class OrphanCollector:
    """Finds, confirms and removes orphaned dependencies in one target."""

    def __init__(
        self,
        store: MetadataStore,
        target_dir: str | Path,
        endpoint_file: str | Path | None = None,
    ):
        self.store = store
        self.target_dir = Path(target_dir)
        self.endpoint_file = (
            Path(endpoint_file) if endpoint_file else self.target_dir / ".claude" / "config.json"
        )

    def collect(self, selected_skills: Iterable[str]) -> tuple[set[str], list[Orphan]]:
        ledger = self.store.read()
        retained = retained_skills(ledger, selected_skills)
        return retained, find_orphans(ledger, retained)

    def narrow(self, retained: set[str]) -> None:
        """Drop requirers that are no longer retained from surviving entries."""
        ledger = self.store.read()
        for category in DEPENDENCY_SECTIONS:
            for name, entry in ledger.resolved_deps.get(category, {}).items():
                if entry.required_by & retained and not entry.required_by <= retained:
                    self.store.narrow_dependency(category, name, retained)

    def cleanup(
        self,
        selected_skills: Iterable[str],
        confirm: Callable[[str, bool], bool],
    ) -> OrphanCleanup:
        """Offer each orphan for removal, then narrow the survivors.

        Args:
            selected_skills: Names of skills that remain directly selected.
            confirm: ``confirm(message, default)`` asked once per orphan.
        """
        retained, orphans = self.collect(selected_skills)
        result = OrphanCleanup()

        for orphan in orphans:
            if confirm(f"{orphan.label} is no longer needed as a dependency. Remove?", True):
                self.remove(orphan)
                result.removed.append(orphan)
            else:
                result.kept.append(orphan)

        self.narrow(retained)
        return result

    def remove(self, orphan: Orphan) -> None:
        """Delete an orphan from the target project and the ledger."""
        if orphan.category == "mcpServers":
            merger.remove_mcp_server(self.endpoint_file, orphan.name)
        elif orphan.category in _TARGETS:
            target = self.target_dir / _TARGETS[orphan.category](orphan.name)
            if target.is_dir():
                shutil.rmtree(target)
            elif target.exists():
                target.unlink()
        self.store.remove_dependency(orphan.category, orphan.name)
        logger.info("Removed orphaned dependency %s/%s", orphan.category, orphan.name)
