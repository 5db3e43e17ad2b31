"""Tests for orphaned dependency collection."""

import json
import tempfile
from pathlib import Path

from hands.sync import merger
from hands.sync.ledger import MetadataStore
from hands.sync.orphans import OrphanCollector, find_orphans, retained_skills


def _setup(tmpdir: str) -> tuple[Path, MetadataStore]:
    project = Path(tmpdir)
    store = MetadataStore.for_target(project)
    return project, store


def test_retained_skills_follow_dependency_chain():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, store = _setup(tmpdir)
        store.track_dependency("skills", "b", "h", "s/b", ["a"])
        store.track_dependency("skills", "c", "h", "s/c", ["b"])
        store.track_dependency("skills", "z", "h", "s/z", ["gone"])

        ledger = store.read()
        assert retained_skills(ledger, ["a"]) == {"a", "b", "c"}
        assert retained_skills(ledger, []) == set()


def test_find_orphans_across_categories():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, store = _setup(tmpdir)
        store.track_dependency("mcpServers", "github", "h", "m", ["review"])
        store.track_dependency("agents", "critic", "h", "a", ["review", "audit"])

        ledger = store.read()
        orphans = find_orphans(ledger, {"audit"})
        assert [(o.category, o.name) for o in orphans] == [("mcpServers", "github")]
        assert orphans[0].label == 'MCP server "github"'


def test_cleanup_removes_confirmed_orphans():
    with tempfile.TemporaryDirectory() as tmpdir:
        project, store = _setup(tmpdir)
        endpoint = project / ".claude" / "config.json"
        merger.add_mcp_server(endpoint, "github", {"command": "gh"})
        agent = project / ".claude" / "agents" / "critic.md"
        agent.parent.mkdir(parents=True)
        agent.write_text("agent\n")
        skill = project / ".claude" / "skills" / "lint"
        skill.mkdir(parents=True)
        (skill / "SKILL.md").write_text("lint\n")

        store.track_dependency("mcpServers", "github", "h", "m", ["review"])
        store.track_dependency("agents", "critic", "h", "a", ["review"])
        store.track_dependency("skills", "lint", "h", "s", ["review"])

        prompts = []

        def confirm(message, default):
            prompts.append(message)
            return default

        result = OrphanCollector(store, project).cleanup([], confirm)

        assert len(result.removed) == 3
        assert len(prompts) == 3
        assert not agent.exists()
        assert not skill.exists()
        assert json.loads(endpoint.read_text())["mcpServers"] == {}
        ledger = store.read()
        assert all(not entries for entries in ledger.resolved_deps.values())


def test_declined_orphan_stays_tracked():
    with tempfile.TemporaryDirectory() as tmpdir:
        project, store = _setup(tmpdir)
        store.track_dependency("agents", "critic", "h", "a", ["review"])

        result = OrphanCollector(store, project).cleanup([], lambda message, default: False)

        assert [o.name for o in result.kept] == ["critic"]
        assert store.is_tracked("agents", "critic")
        again = OrphanCollector(store, project).collect([])[1]
        assert [o.name for o in again] == ["critic"]


def test_cleanup_narrows_surviving_requirers():
    with tempfile.TemporaryDirectory() as tmpdir:
        project, store = _setup(tmpdir)
        store.track_dependency("mcpServers", "github", "h", "m", ["review", "audit"])

        result = OrphanCollector(store, project).cleanup(["audit"], lambda m, d: d)

        assert result.removed == []
        entry = store.get_tracked_dependencies("mcpServers")["github"]
        assert entry.required_by == {"audit"}
