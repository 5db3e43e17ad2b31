"""Tests for the metadata store (ledger)."""

import json
import tempfile
from pathlib import Path

from hands.models.component import Category, Component, ComponentKind
from hands.models.ledger import LEDGER_VERSION, LedgerOrigin
from hands.sync.ledger import MetadataStore


def _skill(name: str = "alpha") -> Component:
    return Component(
        name=name,
        kind=ComponentKind.CONTENT_TREE,
        category=Category.SKILLS,
        source_path=Path("rules/.claude/skills") / name,
    )


def _store(tmpdir: str) -> MetadataStore:
    return MetadataStore.for_target(tmpdir)


def test_read_missing_ledger_returns_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        ledger = _store(tmpdir).read()
        assert ledger.origin == LedgerOrigin.MISSING
        assert ledger.version == LEDGER_VERSION
        assert ledger.installed_by == "hands"
        assert set(ledger.components) == {"skills", "agents", "hooks"}
        assert set(ledger.resolved_deps) == {"mcpServers", "agents", "skills"}


def test_read_corrupt_ledger_returns_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{truncated")
        ledger = store.read()
        assert ledger.origin == LedgerOrigin.CORRUPT
        assert ledger.components["skills"] == {}


def test_read_empty_ledger_treated_as_missing():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.path.parent.mkdir(parents=True)
        store.path.write_text("")
        assert store.read().origin == LedgerOrigin.MISSING


def test_partial_ledger_backfilled_from_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.path.parent.mkdir(parents=True)
        store.path.write_text(
            json.dumps(
                {
                    "components": {"skills": {"alpha": {"hash": "abc"}}},
                    "custom": "kept",
                }
            )
        )
        ledger = store.read()
        assert ledger.origin == LedgerOrigin.FILE
        assert ledger.version == LEDGER_VERSION
        assert ledger.components["skills"]["alpha"].hash == "abc"
        assert ledger.components["agents"] == {}
        assert ledger.resolved_deps["mcpServers"] == {}
        assert ledger.to_dict()["custom"] == "kept"


def test_track_install_and_uninstall():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.track_install(_skill(), "h1")

        info = store.get_tracked_info("skills", "alpha")
        assert info.hash == "h1"
        assert info.installed_at
        assert info.source_path.endswith("alpha")

        data = json.loads(store.path.read_text())
        assert data["components"]["skills"]["alpha"]["hash"] == "h1"

        store.track_uninstall("skills", "alpha")
        assert not store.is_tracked("skills", "alpha")


def test_track_dependency_preserves_installed_at_and_unions_required_by():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.track_dependency("mcpServers", "github", "h1", "src/github.json", ["x"])
        first = store.get_tracked_dependencies("mcpServers")["github"]

        store.track_dependency("mcpServers", "github", "h2", "src/github.json", ["y"])
        second = store.get_tracked_dependencies("mcpServers")["github"]

        assert second.installed_at == first.installed_at
        assert second.hash == "h2"
        assert second.required_by == {"x", "y"}
        data = json.loads(store.path.read_text())
        assert data["resolvedDeps"]["mcpServers"]["github"]["requiredBy"] == ["x", "y"]


def test_remove_dependency():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.track_dependency("agents", "critic", "h", "src/critic.md", ["x"])
        store.remove_dependency("agents", "critic")
        assert store.get_tracked_dependencies("agents") == {}


def test_direct_install_promotes_dependency():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.track_dependency("skills", "alpha", "h", "src/alpha", ["x"])
        store.track_install(_skill("alpha"), "h")

        ledger = store.read()
        assert "alpha" in ledger.components["skills"]
        assert "alpha" not in ledger.resolved_deps["skills"]


def test_dependency_tracking_ignored_for_direct_selection():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.track_install(_skill("alpha"), "h")
        store.track_dependency("skills", "alpha", "h", "src/alpha", ["x"])
        assert store.get_tracked_dependencies("skills") == {}


def test_narrow_dependency_keeps_non_empty_set():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.track_dependency("mcpServers", "github", "h", "src", ["x", "y"])

        store.narrow_dependency("mcpServers", "github", {"y"})
        assert store.get_tracked_dependencies("mcpServers")["github"].required_by == {"y"}

        store.narrow_dependency("mcpServers", "github", set())
        assert store.get_tracked_dependencies("mcpServers")["github"].required_by == {"y"}


def test_unchanged_mutation_does_not_write(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.track_dependency("mcpServers", "github", "h", "src", ["x"])

        writes = []
        monkeypatch.setattr(store, "write", lambda ledger: writes.append(ledger))
        store.track_dependency("mcpServers", "github", "h", "src", ["x"])
        store.remove_dependency("agents", "nobody")
        assert writes == []


def test_write_leaves_no_temp_files():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.track_install(_skill(), "h")
        assert [p.name for p in store.path.parent.iterdir()] == [".hands-meta.json"]
