"""hands CLI — the main entry point."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from hands import __version__
from hands.config import HandsConfig, load_config
from hands.errors import HandsError, WorkspaceError
from hands.logging_config import setup_logging
from hands.models.component import Category, Component, ComponentSet, DependencyPool

console = Console()

_STATUS_STYLE = {
    "installed": "[green]\\[✓][/]",
    "outdated": "[yellow]\\[~][/]",
    "available": "[dim]\\[ ][/]",
    "missing-env": "[red]\\[!][/]",
}


@click.group()
@click.version_option(version=__version__)
@click.option("--rules-dir", "-r", default=None, help="Rules directory holding .claude/")
@click.option("--target-dir", "-t", default=None, help="Project to sync into (default: cwd)")
@click.option("--config", "config_path", default=None, help="YAML config file (default: ./hands.yaml)")
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
@click.option("--log-file", default=None, help="Also write full DEBUG logs to this file")
@click.pass_context
def main(ctx, rules_dir, target_dir, config_path, log_level, log_file):
    """hands — sync skills, agents, hooks and MCP servers into a project.

    Components live in a shared rules tree; hands copies or merges them
    into the target project, tracks what it placed there, and resolves the
    dependencies skills declare in their manifest.json.
    """
    try:
        config = load_config(
            config_path,
            rules_dir=rules_dir,
            target_dir=target_dir,
            log_level=log_level,
            log_file=log_file,
        )
    except HandsError as e:
        raise click.ClickException(str(e)) from e

    setup_logging(config.log_level, config.log_file)
    ctx.obj = config


def _open_workspace(config: HandsConfig) -> tuple[ComponentSet, DependencyPool]:
    from hands.registry.detector import detect_all

    try:
        config.rules_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WorkspaceError(f"Cannot access rules directory {config.rules_path}: {e}") from e
    return detect_all(config.rules_path)


def _status_resolver(config: HandsConfig):
    from hands.sync.ledger import MetadataStore
    from hands.sync.status import StatusResolver

    return StatusResolver(
        config.target_path, MetadataStore(config.metadata_path), config.settings_path
    )


def _print_empty_rules(config: HandsConfig) -> None:
    console.print(f"[yellow]No components found in {config.rules_path}.[/]")
    console.print("[dim]Expected structure:[/]")
    console.print("[dim]  .claude/skills/<name>/SKILL.md[/]")
    console.print("[dim]  .claude/agents/<name>.md[/]")
    console.print("[dim]  .claude/hooks/<name>.json[/]")
    console.print("[dim]  .claude/mcp-servers/<name>.json  (dependency pool)[/]")


# ── Status ───────────────────────────────────────────────────────────


@main.command()
@click.pass_obj
def status(config: HandsConfig):
    """Show every component and whether it is installed in the target."""
    try:
        components, _pool = _open_workspace(config)
    except HandsError as e:
        raise click.ClickException(str(e)) from e

    if not len(components):
        _print_empty_rules(config)
        return

    reports = _status_resolver(config).resolve_all(components)

    for category, items in reports.items():
        if not items:
            continue
        table = Table(title=category.value.capitalize())
        table.add_column("", width=3)
        table.add_column("Name", style="cyan")
        table.add_column("Status")
        table.add_column("Depends on", style="dim")

        for report in items:
            manifest = report.component.manifest
            detail = report.status
            if report.missing_env_vars:
                detail = f"missing: {', '.join(report.missing_env_vars)}"
            elif report.reason and report.status == "outdated":
                detail = f"outdated ({report.reason})"
            table.add_row(
                _STATUS_STYLE.get(report.status, ""),
                report.name,
                detail,
                ", ".join(manifest.dependency_hints()) if manifest else "",
            )
        console.print(table)


# ── Deps ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("skills", nargs=-1, required=True)
@click.pass_context
def deps(ctx: click.Context, skills: tuple[str, ...]):
    """Show what selecting SKILLS would pull in, without changing anything."""
    from hands.sync.resolver import resolve_dependencies

    config: HandsConfig = ctx.obj

    try:
        components, pool = _open_workspace(config)
    except HandsError as e:
        raise click.ClickException(str(e)) from e

    selected = []
    for name in skills:
        skill = components.find(name, Category.SKILLS)
        if skill is None:
            raise click.ClickException(f"Unknown skill: {name}")
        selected.append(skill)

    resolution = resolve_dependencies(selected, components.skills, [], components.agents, pool)

    if resolution.has_dependencies:
        table = Table(title="Dependencies")
        table.add_column("Type")
        table.add_column("Name", style="cyan")
        table.add_column("Required by")
        for kind, resolved in (
            ("mcp", resolution.mcp_servers),
            ("agent", resolution.agents),
            ("skill", resolution.skills),
        ):
            for dep in resolved.values():
                table.add_row(kind, dep.name, ", ".join(sorted(dep.required_by)))
        console.print(table)
    else:
        console.print("[dim]No dependencies.[/]")

    for warning in resolution.warnings:
        console.print(f"  [yellow]![/] {warning}")
    for error in resolution.errors:
        console.print(f"  [red]x[/] {error}")

    if not resolution.ok:
        ctx.exit(1)


# ── Sync ─────────────────────────────────────────────────────────────


@main.command()
@click.option("--select", "-s", "names", multiple=True, help="Component to keep installed (repeatable)")
@click.option("--yes", "-y", is_flag=True, help="Accept every confirmation with its default")
@click.pass_context
def sync(ctx: click.Context, names: tuple[str, ...], yes: bool):
    """Install the selected components and remove deselected ones.

    Without --select, the components currently in the target are
    preselected and you are asked for the final selection.
    """
    from hands.sync.installer import SyncEngine

    config: HandsConfig = ctx.obj

    try:
        components, pool = _open_workspace(config)
    except HandsError as e:
        raise click.ClickException(str(e)) from e

    if not len(components):
        _print_empty_rules(config)
        return

    if names:
        selected = _select_by_name(components, names)
    else:
        selected = _prompt_selection(config, components, assume_yes=yes or config.assume_yes)

    def confirm(message: str, default: bool) -> bool:
        if yes or config.assume_yes:
            return default
        return click.confirm(message, default=default)

    console.print("\n[bold blue]Syncing components...[/]\n")
    result = SyncEngine.from_config(config, confirm=confirm).sync(selected, components, pool)

    for warning in result.warnings:
        console.print(f"  [yellow]Warning:[/] {warning}")
    if result.aborted:
        for error in result.errors:
            console.print(f"  [red]Error:[/] {error}")
        console.print("\n[red]Aborting due to dependency errors.[/]")
        ctx.exit(1)

    _print_summary(result)


def _select_by_name(components: ComponentSet, names: tuple[str, ...]) -> list[Component]:
    selected: dict[tuple[str, str], Component] = {}
    for name in names:
        matches = [c for c in components.all() if c.name == name]
        if not matches:
            raise click.ClickException(f"Unknown component: {name}")
        selected.update((c.key, c) for c in matches)
    return list(selected.values())


def _prompt_selection(
    config: HandsConfig, components: ComponentSet, assume_yes: bool
) -> list[Component]:
    from hands.sync.ledger import MetadataStore

    resolver = _status_resolver(config)
    ledger = MetadataStore(config.metadata_path).read()

    preselected = []
    for component in components.all():
        report = resolver.resolve(component)
        tracked = component.name in ledger.components.get(component.category.value, {})
        marker = _STATUS_STYLE.get(report.status, "")
        hints = component.manifest.dependency_hints() if component.manifest else []
        hint = f" [dim]-> {', '.join(hints)}[/]" if hints else ""
        console.print(f"{marker} {component.category.value[:-1]:<6} {component.name:<25} {report.status}{hint}")
        if report.is_present or tracked:
            preselected.append(component.name)

    if assume_yes:
        return _select_by_name(components, tuple(dict.fromkeys(preselected)))

    answer = click.prompt(
        "\nComponents to keep installed (comma-separated, '-' for none)",
        default=",".join(dict.fromkeys(preselected)) or "-",
    )
    names = tuple(n.strip() for n in answer.split(",") if n.strip() and n.strip() != "-")
    return _select_by_name(components, names)


def _print_summary(result) -> None:
    console.print()
    if result.installed:
        console.print(f"[green]✓ Installed:[/] {', '.join(result.installed)}")
    if result.updated:
        console.print(f"[yellow]↻ Updated:[/] {', '.join(result.updated)}")
    if result.removed:
        console.print(f"[red]✗ Removed:[/] {', '.join(result.removed)}")
    if result.deps_added:
        console.print(f"[green]⊕ Dependencies added:[/] {', '.join(result.deps_added)}")
    if result.deps_removed:
        console.print(f"[yellow]⊖ Dependencies removed:[/] {', '.join(result.deps_removed)}")
    if result.failed:
        console.print(f"[red]Failed:[/] {', '.join(result.failed)}")
    for backup in result.backups:
        console.print(f"[dim]Backed up existing to: {backup}[/]")
    if not result.has_changes:
        console.print("[dim]No changes made.[/]")
    console.print("\n[bold green]Done![/]")


# ── Orphans ──────────────────────────────────────────────────────────


@main.command()
@click.pass_obj
def orphans(config: HandsConfig):
    """List auto-installed dependencies no tracked skill requires any more."""
    from hands.models.ledger import LedgerOrigin
    from hands.sync.ledger import MetadataStore
    from hands.sync.orphans import find_orphans, retained_skills

    ledger = MetadataStore(config.metadata_path).read()
    if ledger.origin == LedgerOrigin.CORRUPT:
        console.print("[yellow]Ledger was unreadable; showing an empty ledger.[/]")

    selected = ledger.components.get("skills", {}).keys()
    found = find_orphans(ledger, retained_skills(ledger, selected))

    if not found:
        console.print("[green]No orphaned dependencies.[/]")
        return

    table = Table(title=f"Orphaned dependencies ({len(found)})")
    table.add_column("Type")
    table.add_column("Name", style="cyan")
    table.add_column("Was required by")
    for orphan in found:
        table.add_row(orphan.category, orphan.name, ", ".join(sorted(orphan.entry.required_by)))
    console.print(table)


if __name__ == "__main__":
    main()
