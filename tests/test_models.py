"""Tests for component and ledger data models."""

from pathlib import Path

from hands.models.component import (
    Category,
    Component,
    ComponentKind,
    ComponentSet,
    DependencyPool,
    Manifest,
)
from hands.models.ledger import DependencyEntry, Ledger, LedgerOrigin


def test_manifest_defaults():
    manifest = Manifest()
    assert manifest.agent == ""
    assert manifest.mcp_servers == []
    assert manifest.skills == []
    assert not manifest.has_dependencies


def test_manifest_drops_wrongly_typed_fields():
    manifest = Manifest.from_dict(
        {"agent": ["not", "a", "string"], "mcpServers": "github", "skills": ["lint", 3], "tools": ["Bash"]}
    )
    assert manifest.agent == ""
    assert manifest.mcp_servers == []
    assert manifest.skills == ["lint"]
    assert manifest.tools == ["Bash"]


def test_manifest_dependency_hints():
    manifest = Manifest(agent="critic", mcp_servers=["github"], skills=["lint"])
    assert manifest.dependency_hints() == ["mcp: github", "agent: critic", "skill: lint"]


def test_component_set_lookup():
    skill = Component("alpha", ComponentKind.CONTENT_TREE, Category.SKILLS, Path("s/alpha"))
    agent = Component("alpha", ComponentKind.CONTENT_TREE, Category.AGENTS, Path("a/alpha.md"))
    components = ComponentSet(skills=[skill], agents=[agent])

    assert len(components) == 2
    assert components.find("alpha", Category.AGENTS) is agent
    assert components.find("alpha") is skill
    assert components.find("missing") is None
    assert components.by_category(Category.HOOKS) == []
    assert skill.key == ("skills", "alpha")


def test_dependency_pool_get():
    server = Component("db", ComponentKind.JSON_ENTRY, Category.MCP_SERVERS, Path("db.json"))
    pool = DependencyPool(mcp_servers=[server])
    assert pool.get("db") is server
    assert pool.get("other") is None


def test_ledger_get_checks_both_sections():
    ledger = Ledger()
    ledger.resolved_deps["agents"]["critic"] = DependencyEntry(hash="h", required_by={"x"})
    assert ledger.get("agents", "critic").hash == "h"
    assert ledger.get("agents", "nobody") is None


def test_ledger_from_dict_drops_malformed_sections():
    ledger = Ledger.from_dict(
        {
            "version": 7,
            "components": {"skills": "oops", "agents": {"critic": {"hash": "h"}, "bad": 5}},
            "resolvedDeps": {"skills": {"lint": {"hash": "l", "requiredBy": ["x", 3]}}},
        }
    )
    assert ledger.origin == LedgerOrigin.FILE
    assert ledger.version == "3.0.0"
    assert ledger.components["skills"] == {}
    assert list(ledger.components["agents"]) == ["critic"]
    assert ledger.resolved_deps["skills"]["lint"].required_by == {"x"}
