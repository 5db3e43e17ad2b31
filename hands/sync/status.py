"""Status resolution — compare rules-tree components with a target project.

Each component gets one of four statuses:

1. ``missing-env``: a hook needs environment variables that are absent
   (checked first, wins over everything else)
2. ``available``: not present in the target
3. ``installed``: present and identical to the source
4. ``outdated``: present but different from the source

For files and directories, drift is decided by content hash alone; the
ledger only explains *why* (tracked install that drifted vs. an unrelated
local file that happens to share the name).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from hands.models.component import Category, Component, ComponentSet
from hands.sync import merger
from hands.sync.env import validate_component_env
from hands.sync.ledger import MetadataStore
from hands.utils.file_scanner import compute_directory_hash, compute_file_hash, compute_hash


class Status:
    AVAILABLE = "available"
    INSTALLED = "installed"
    OUTDATED = "outdated"
    MISSING_ENV = "missing-env"


class StatusReason:
    NOT_PRESENT = "not present"
    UP_TO_DATE = "up to date"
    CHANGED = "changed since install"  # Tracked by hands, content differs
    DIFFERENT = "different"  # Not tracked; a local file with the same name
    UNTRACKED = "not tracked"  # Hook marker found but no matching ledger hash
    MISSING_ENV = "missing environment"


@dataclass
class StatusReport:
    """Status of a single component in a target project."""

    component: Component
    status: str
    reason: str = ""
    missing_env_vars: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.component.name

    @property
    def is_present(self) -> bool:
        """True if the component is currently in the target (installed or drifted)."""
        return self.status in (Status.INSTALLED, Status.OUTDATED)

    def summary(self) -> str:
        if self.status == Status.MISSING_ENV:
            return f"{self.name}: missing {', '.join(self.missing_env_vars)}"
        if self.reason:
            return f"{self.name}: {self.status} ({self.reason})"
        return f"{self.name}: {self.status}"


def hash_source(component: Component, path: Path | None = None) -> str | None:
    """Content hash of a component's source (or of ``path`` if given)."""
    path = path or component.source_path
    if component.category == Category.SKILLS:
        return compute_directory_hash(path)
    if component.is_content_tree:
        return compute_file_hash(path)
    return compute_hash(component.config)


class StatusResolver:
    """Resolves component statuses against one target project."""

    def __init__(
        self,
        target_dir: str | Path,
        store: MetadataStore | None = None,
        settings_file: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        self.target_dir = Path(target_dir)
        self.store = store or MetadataStore.for_target(self.target_dir)
        self.settings_file = Path(settings_file) if settings_file else None
        self.environ = os.environ if environ is None else environ

    def target_of(self, component: Component) -> Path:
        """Absolute path where a content-tree component lands."""
        return self.target_dir / component.target_path

    def resolve(self, component: Component) -> StatusReport:
        if component.category == Category.HOOKS:
            return self._resolve_hook(component)
        return self._resolve_content_tree(component)

    def resolve_all(self, components: ComponentSet) -> dict[Category, list[StatusReport]]:
        """Resolve every component, keeping the per-category grouping."""
        return {
            Category.SKILLS: [self.resolve(c) for c in components.skills],
            Category.AGENTS: [self.resolve(c) for c in components.agents],
            Category.HOOKS: [self.resolve(c) for c in components.hooks],
        }

    def _resolve_content_tree(self, component: Component) -> StatusReport:
        target = self.target_of(component)
        if not target.exists():
            return StatusReport(component, Status.AVAILABLE, StatusReason.NOT_PRESENT)

        if hash_source(component) == hash_source(component, target):
            return StatusReport(component, Status.INSTALLED, StatusReason.UP_TO_DATE)

        tracked = self.store.is_tracked(component.category.value, component.name)
        reason = StatusReason.CHANGED if tracked else StatusReason.DIFFERENT
        return StatusReport(component, Status.OUTDATED, reason)

    def _resolve_hook(self, component: Component) -> StatusReport:
        validation = validate_component_env(component, self.environ)
        if not validation.is_valid:
            return StatusReport(
                component,
                Status.MISSING_ENV,
                StatusReason.MISSING_ENV,
                missing_env_vars=validation.missing_vars,
            )

        settings_file = self.settings_file or self.target_dir / component.target_file
        if not merger.has_hook(settings_file, component.name):
            return StatusReport(component, Status.AVAILABLE, StatusReason.NOT_PRESENT)

        tracked = self.store.get_tracked_info(component.category.value, component.name)
        if tracked is not None and tracked.hash == compute_hash(component.config):
            return StatusReport(component, Status.INSTALLED, StatusReason.UP_TO_DATE)

        reason = StatusReason.CHANGED if tracked is not None else StatusReason.UNTRACKED
        return StatusReport(component, Status.OUTDATED, reason)
