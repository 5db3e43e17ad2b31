"""Detector — discover components in a rules tree.

Expected layout::

    <rules>/.claude/skills/<name>/SKILL.md        (+ optional manifest.json)
    <rules>/.claude/agents/<name>.md
    <rules>/.claude/hooks/<name>.json
    <rules>/.claude/mcp-servers/<name>.json       (dependency pool)

Malformed JSON never aborts a scan: a bad manifest leaves its skill
dependency-free, a bad hook or server file skips that one entry.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from hands.models.component import (
    Category,
    Component,
    ComponentKind,
    ComponentSet,
    DependencyPool,
    Manifest,
)
from hands.sync.env import extract_required_env
from hands.utils.file_scanner import MANIFEST_FILE, scan_component_files

logger = logging.getLogger(__name__)

CLAUDE_DIR = ".claude"
SKILL_FILE = "SKILL.md"
SETTINGS_FILE = Path(CLAUDE_DIR) / "settings.json"
ENDPOINT_FILE = Path(CLAUDE_DIR) / "config.json"


def detect_components(rules_path: str | Path) -> ComponentSet:
    """Detect every user-selectable component under a rules directory."""
    claude_path = Path(rules_path) / CLAUDE_DIR
    components = ComponentSet()
    if not claude_path.is_dir():
        logger.info("No %s directory in %s", CLAUDE_DIR, rules_path)
        return components

    components.skills = _detect_skills(claude_path / "skills")
    components.agents = _detect_agents(claude_path / "agents")
    components.hooks = _detect_json_entries(
        claude_path / "hooks", Category.HOOKS, SETTINGS_FILE, "hooks"
    )
    return components


def detect_dependency_pool(rules_path: str | Path) -> DependencyPool:
    """Detect the MCP servers skills may depend on."""
    return DependencyPool(
        mcp_servers=_detect_json_entries(
            Path(rules_path) / CLAUDE_DIR / "mcp-servers",
            Category.MCP_SERVERS,
            ENDPOINT_FILE,
            "mcpServers",
        )
    )


def detect_all(rules_path: str | Path) -> tuple[ComponentSet, DependencyPool]:
    """Scan components and the dependency pool concurrently.

    The two scans read disjoint subtrees and share no state.
    """
    with ThreadPoolExecutor(max_workers=2) as executor:
        components = executor.submit(detect_components, rules_path)
        pool = executor.submit(detect_dependency_pool, rules_path)
        return components.result(), pool.result()


def _detect_skills(skills_path: Path) -> list[Component]:
    if not skills_path.is_dir():
        return []

    skills = []
    for entry in sorted(skills_path.iterdir()):
        if not entry.is_dir() or not (entry / SKILL_FILE).is_file():
            continue

        skills.append(
            Component(
                name=entry.name,
                kind=ComponentKind.CONTENT_TREE,
                category=Category.SKILLS,
                source_path=entry,
                target_path=Path(CLAUDE_DIR) / "skills" / entry.name,
                manifest=_read_manifest(entry / MANIFEST_FILE),
                files=scan_component_files(entry),
            )
        )
    return skills


def _read_manifest(path: Path) -> Manifest | None:
    if not path.is_file():
        return None
    data = _read_json(path)
    if not isinstance(data, dict):
        logger.warning("Ignoring invalid manifest %s", path)
        return None
    return Manifest.from_dict(data)


def _detect_agents(agents_path: Path) -> list[Component]:
    if not agents_path.is_dir():
        return []

    return [
        Component(
            name=entry.stem,
            kind=ComponentKind.CONTENT_TREE,
            category=Category.AGENTS,
            source_path=entry,
            target_path=Path(CLAUDE_DIR) / "agents" / entry.name,
        )
        for entry in sorted(agents_path.iterdir())
        if entry.is_file() and entry.suffix == ".md"
    ]


def _detect_json_entries(
    directory: Path, category: Category, target_file: Path, target_key: str
) -> list[Component]:
    if not directory.is_dir():
        return []

    entries = []
    for entry in sorted(directory.iterdir()):
        if not entry.is_file() or entry.suffix != ".json":
            continue

        data = _read_json(entry)
        if not isinstance(data, dict):
            logger.warning("Skipping %s: not a JSON object", entry)
            continue

        config, required_env = extract_required_env(data)
        entries.append(
            Component(
                name=entry.stem,
                kind=ComponentKind.JSON_ENTRY,
                category=category,
                source_path=entry,
                target_file=target_file,
                target_key=target_key,
                config=config,
                required_env=required_env,
            )
        )
    return entries


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        logger.debug("Cannot parse %s: %s", path, e)
        return None
