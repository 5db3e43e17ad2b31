"""Ledger data models — the persisted record of what hands installed.

The ledger has two sections:

- ``components``: direct user selections (skills, agents, hooks)
- ``resolvedDeps``: auto-resolved dependencies (mcpServers, agents, skills),
  each carrying the set of skills that required it

A ``(category, name)`` pair lives in at most one of the two sections.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

LEDGER_VERSION = "3.0.0"
INSTALLED_BY = "hands"

COMPONENT_SECTIONS = ("skills", "agents", "hooks")
DEPENDENCY_SECTIONS = ("mcpServers", "agents", "skills")


class LedgerOrigin:
    FILE = "file"  # Read from an intact ledger file
    MISSING = "missing"  # No ledger file yet (first run)
    CORRUPT = "corrupt"  # File existed but could not be parsed; defaults used


@dataclass
class LedgerEntry:
    """A directly selected component."""

    hash: str | None
    installed_at: str = ""  # ISO 8601
    source_path: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "installedAt": self.installed_at,
            "sourcePath": self.source_path,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LedgerEntry:
        return cls(
            hash=data.get("hash"),
            installed_at=data.get("installedAt", ""),
            source_path=data.get("sourcePath", ""),
        )


@dataclass
class DependencyEntry(LedgerEntry):
    """An auto-resolved dependency and the skills that required it."""

    required_by: set[str] = field(default_factory=set)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["requiredBy"] = sorted(self.required_by)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DependencyEntry:
        required_by = data.get("requiredBy") or []
        return cls(
            hash=data.get("hash"),
            installed_at=data.get("installedAt", ""),
            source_path=data.get("sourcePath", ""),
            required_by={name for name in required_by if isinstance(name, str)},
        )


@dataclass
class Ledger:
    """The complete ledger document."""

    version: str = LEDGER_VERSION
    installed_by: str = INSTALLED_BY
    components: dict[str, dict[str, LedgerEntry]] = field(
        default_factory=lambda: {section: {} for section in COMPONENT_SECTIONS}
    )
    resolved_deps: dict[str, dict[str, DependencyEntry]] = field(
        default_factory=lambda: {section: {} for section in DEPENDENCY_SECTIONS}
    )
    extra: dict[str, Any] = field(default_factory=dict)  # Unknown top-level keys, kept verbatim
    origin: str = LedgerOrigin.MISSING  # Not persisted

    def get(self, category: str, name: str) -> LedgerEntry | None:
        """Look up a name in direct selections first, then in dependencies."""
        entry = self.components.get(category, {}).get(name)
        if entry is not None:
            return entry
        return self.resolved_deps.get(category, {}).get(name)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "version": self.version,
                "installedBy": self.installed_by,
                "components": {
                    category: {name: entry.to_dict() for name, entry in entries.items()}
                    for category, entries in self.components.items()
                },
                "resolvedDeps": {
                    category: {name: entry.to_dict() for name, entry in entries.items()}
                    for category, entries in self.resolved_deps.items()
                },
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Ledger:
        """Overlay stored data onto a default ledger, field by field.

        Missing keys are back-filled from defaults; malformed sections and
        entries are dropped individually.
        """
        ledger = cls(origin=LedgerOrigin.FILE)
        ledger.extra = {
            k: v
            for k, v in data.items()
            if k not in ("version", "installedBy", "components", "resolvedDeps")
        }
        if isinstance(data.get("version"), str):
            ledger.version = data["version"]
        if isinstance(data.get("installedBy"), str):
            ledger.installed_by = data["installedBy"]

        for category, entries in _sections(data.get("components")):
            ledger.components[category] = {
                name: LedgerEntry.from_dict(entry) for name, entry in entries
            }
        for category, entries in _sections(data.get("resolvedDeps")):
            ledger.resolved_deps[category] = {
                name: DependencyEntry.from_dict(entry) for name, entry in entries
            }
        return ledger


def _sections(value: Any):
    if not isinstance(value, dict):
        return
    for category, entries in value.items():
        if not isinstance(entries, dict):
            continue
        yield category, [
            (name, entry) for name, entry in entries.items() if isinstance(entry, dict)
        ]
