"""Sync engine — apply a selection to a target project.

One pass:

1. resolve the selection's dependencies (a cycle aborts before any change)
2. confirm new or changed dependencies, warning about missing env vars
3. remove deselected skills and agents (those still needed as
   dependencies are converted to dependency entries instead)
4. install dependencies, then the selected skills and agents
5. merge selected hooks into the settings file, remove deselected ones
6. offer orphaned dependencies for removal

Confirmation is delegated to a ``confirm(message, default) -> bool``
callback so the engine carries no UI of its own.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from hands.config import HandsConfig
from hands.models.component import Category, Component, ComponentSet, DependencyPool
from hands.sync import merger
from hands.sync.env import format_env_warning, validate_component_env
from hands.sync.ledger import MetadataStore
from hands.sync.orphans import OrphanCollector
from hands.sync.resolver import Resolution, ResolvedDependency, resolve_dependencies
from hands.sync.status import Status, StatusReport, StatusResolver, hash_source
from hands.utils.file_scanner import MANIFEST_FILE, compute_hash

logger = logging.getLogger(__name__)

Confirm = Callable[[str, bool], bool]


class InstallOutcome:
    COPIED = "copied"
    UNCHANGED = "unchanged"
    MISSING_SOURCE = "missing_source"


def accept_defaults(message: str, default: bool) -> bool:
    return default


@dataclass
class SyncResult:
    """What a sync pass changed, and what stopped it."""

    installed: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    deps_added: list[str] = field(default_factory=list)
    deps_removed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    backups: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    resolution: Resolution | None = None

    @property
    def aborted(self) -> bool:
        return bool(self.errors)

    @property
    def has_changes(self) -> bool:
        return bool(
            self.installed or self.updated or self.removed or self.deps_added or self.deps_removed
        )


class SyncEngine:
    """Installs, updates and removes components in one target project."""

    def __init__(
        self,
        target_dir: str | Path,
        store: MetadataStore | None = None,
        settings_file: str | Path | None = None,
        endpoint_file: str | Path | None = None,
        backup_suffix: str = ".local",
        confirm: Confirm | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        self.target_dir = Path(target_dir)
        self.store = store or MetadataStore.for_target(self.target_dir)
        self.settings_file = Path(settings_file) if settings_file else self.target_dir / ".claude" / "settings.json"
        self.endpoint_file = Path(endpoint_file) if endpoint_file else self.target_dir / ".claude" / "config.json"
        self.backup_suffix = backup_suffix
        self.confirm = confirm or accept_defaults
        self.environ = os.environ if environ is None else environ
        self.status = StatusResolver(self.target_dir, self.store, self.settings_file, self.environ)

    @classmethod
    def from_config(cls, config: HandsConfig, confirm: Confirm | None = None) -> SyncEngine:
        return cls(
            config.target_path,
            store=MetadataStore(config.metadata_path),
            settings_file=config.settings_path,
            endpoint_file=config.endpoint_path,
            backup_suffix=config.backup_suffix,
            confirm=confirm,
        )

    # ------------------------------------------------------------------
    # File primitives
    # ------------------------------------------------------------------

    def install_file_component(self, component: Component, result: SyncResult | None = None) -> str:
        """Copy a skill directory or agent file into the target.

        A target whose content differs from the source is first copied
        aside with the backup suffix. Identical targets are left alone.
        """
        source = Path(component.source_path)
        target = self.status.target_of(component)

        if not source.exists():
            logger.warning("Source not found: %s", source)
            return InstallOutcome.MISSING_SOURCE

        if target.exists():
            if hash_source(component) == hash_source(component, target):
                return InstallOutcome.UNCHANGED
            backup = target.with_name(target.name + self.backup_suffix)
            _remove_path(backup)
            if target.is_dir():
                shutil.copytree(target, backup)
            else:
                shutil.copy2(target, backup)
            _remove_path(target)
            if result is not None:
                result.backups.append(str(backup))
            logger.info("Backed up existing %s to %s", target, backup.name)

        target.parent.mkdir(parents=True, exist_ok=True)
        if source.is_dir():
            shutil.copytree(source, target, ignore=shutil.ignore_patterns(MANIFEST_FILE))
        else:
            shutil.copy2(source, target)
        return InstallOutcome.COPIED

    def uninstall_file_component(self, component: Component) -> None:
        _remove_path(self.status.target_of(component))

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync(
        self,
        selected: list[Component],
        components: ComponentSet,
        pool: DependencyPool,
    ) -> SyncResult:
        """Make the target match ``selected``; see the module docstring."""
        result = SyncResult()
        chosen = {category: [] for category in Category}
        for component in selected:
            chosen[component.category].append(component)

        resolution = resolve_dependencies(
            selected_skills=chosen[Category.SKILLS],
            all_skills=components.skills,
            selected_agents=chosen[Category.AGENTS],
            all_agents=components.agents,
            pool=pool,
        )
        result.resolution = resolution
        result.warnings.extend(resolution.warnings)
        if not resolution.ok:
            result.errors.extend(resolution.errors)
            logger.error("Aborting sync: %s", "; ".join(resolution.errors))
            return result

        install_deps = self._confirm_dependencies(resolution, result)
        needed = resolution.by_category() if install_deps else {}

        reports = {
            category: [self.status.resolve(c) for c in components.by_category(category)]
            for category in (Category.SKILLS, Category.AGENTS)
        }

        for category in (Category.SKILLS, Category.AGENTS):
            self._remove_deselected(category, reports[category], chosen[category], needed, result)

        if install_deps:
            self._install_dependencies(resolution, result)

        for category in (Category.SKILLS, Category.AGENTS):
            self._install_selected(category, reports[category], chosen[category], result)

        self._sync_hooks(chosen[Category.HOOKS], result)

        cleanup = OrphanCollector(self.store, self.target_dir, self.endpoint_file).cleanup(
            [s.name for s in chosen[Category.SKILLS]], self.confirm
        )
        result.deps_removed.extend(f"{o.name} ({_DEP_LABELS[o.category]})" for o in cleanup.removed)
        return result

    def _confirm_dependencies(self, resolution: Resolution, result: SyncResult) -> bool:
        """Ask before installing dependencies that are new or changed."""
        pending = [
            dep
            for category, deps in resolution.by_category().items()
            for dep in deps.values()
            if self._dependency_pending(category, dep)
        ]
        if not pending:
            return True

        env_issues = False
        for dep in resolution.mcp_servers.values():
            validation = validate_component_env(dep.component, self.environ)
            if not validation.is_valid:
                result.warnings.append(format_env_warning(validation.missing_vars, dep.name))
                env_issues = True

        message = (
            "Install dependencies anyway? (some env vars are missing)"
            if env_issues
            else "Install dependencies?"
        )
        return self.confirm(message, not env_issues)

    def _dependency_pending(self, category: str, dep: ResolvedDependency) -> bool:
        if category == "mcpServers":
            return merger.get_mcp_server(self.endpoint_file, dep.name) != dep.component.config
        return self.status.resolve(dep.component).status != Status.INSTALLED

    def _remove_deselected(
        self,
        category: Category,
        reports: list[StatusReport],
        chosen: list[Component],
        needed: dict[str, dict[str, ResolvedDependency]],
        result: SyncResult,
    ) -> None:
        chosen_names = {c.name for c in chosen}
        tracked = self.store.get_tracked_components(category.value)
        tracked_deps = self.store.get_tracked_dependencies(category.value)

        for report in reports:
            name = report.name
            if name in chosen_names:
                continue

            if name in needed.get(category.value, {}):
                # Still required by another skill: keep the files, track as a dependency
                self.store.track_uninstall(category.value, name)
                continue

            if not report.is_present:
                if name in tracked:
                    # Deleted by hand; only the ledger entry is left
                    self.store.track_uninstall(category.value, name)
                    logger.info("Forgot %s/%s: no longer in the target", category.value, name)
                continue

            owned = name in tracked or (report.status == Status.INSTALLED and name not in tracked_deps)
            if not owned:
                continue

            self.uninstall_file_component(report.component)
            self.store.track_uninstall(category.value, name)
            result.removed.append(name)

    def _install_dependencies(self, resolution: Resolution, result: SyncResult) -> None:
        for dep in resolution.mcp_servers.values():
            known = dep.name in self.store.get_tracked_dependencies("mcpServers")
            changed = merger.add_mcp_server(self.endpoint_file, dep.name, dep.component.config)
            self.store.track_dependency(
                "mcpServers",
                dep.name,
                compute_hash(dep.component.config),
                dep.component.source_path,
                dep.required_by,
            )
            if changed or not known:
                result.deps_added.append(f"{dep.name} (mcp)")

        for category, label in (("agents", "agent"), ("skills", "skill")):
            for dep in resolution.by_category()[category].values():
                known = dep.name in self.store.get_tracked_dependencies(category)
                outcome = self.install_file_component(dep.component, result)
                if outcome == InstallOutcome.MISSING_SOURCE:
                    result.failed.append(dep.name)
                    continue
                self.store.track_dependency(
                    category,
                    dep.name,
                    hash_source(dep.component),
                    dep.component.source_path,
                    dep.required_by,
                )
                if outcome == InstallOutcome.COPIED or not known:
                    result.deps_added.append(f"{dep.name} ({label})")

    def _install_selected(
        self,
        category: Category,
        reports: list[StatusReport],
        chosen: list[Component],
        result: SyncResult,
    ) -> None:
        by_name = {r.name: r for r in reports}
        tracked = self.store.get_tracked_components(category.value)

        for component in chosen:
            report = by_name.get(component.name) or self.status.resolve(component)

            if report.status == Status.INSTALLED:
                if component.name not in tracked:
                    self.store.track_install(component, hash_source(component))
                continue

            outcome = self.install_file_component(component, result)
            if outcome == InstallOutcome.MISSING_SOURCE:
                result.failed.append(component.name)
                continue

            self.store.track_install(component, hash_source(component))
            if report.status == Status.AVAILABLE:
                result.installed.append(component.name)
            else:
                result.updated.append(component.name)

    def _sync_hooks(self, chosen: list[Component], result: SyncResult) -> None:
        keep = []
        tracked = self.store.get_tracked_components(Category.HOOKS.value)

        for hook in chosen:
            validation = validate_component_env(hook, self.environ)
            if validation.is_valid:
                keep.append(hook)
                continue
            result.warnings.append(format_env_warning(validation.missing_vars, hook.name))
            if self.confirm(f"Install {hook.name} anyway?", False):
                keep.append(hook)

        declined = {h.name for h in chosen} - {h.name for h in keep}
        hook_result = merger.sync_hooks(
            self.settings_file,
            keep,
            self.store,
            untouched={name for name in declined if name in tracked},
        )
        result.installed.extend(hook_result.added)
        result.updated.extend(hook_result.updated)
        result.removed.extend(hook_result.removed)


_DEP_LABELS = {"mcpServers": "mcp", "agents": "agent", "skills": "skill"}


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()
