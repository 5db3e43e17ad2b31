"""Tests for component detection in a rules tree."""

import json
import tempfile
from pathlib import Path

from hands.models.component import Category, ComponentKind
from hands.registry.detector import detect_all, detect_components, detect_dependency_pool


def _claude(tmpdir: str) -> Path:
    path = Path(tmpdir) / ".claude"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _write_skill(tmpdir: str, name: str, manifest=None, marker: bool = True) -> Path:
    skill = _claude(tmpdir) / "skills" / name
    skill.mkdir(parents=True)
    if marker:
        (skill / "SKILL.md").write_text(f"# {name}")
    (skill / "notes.md").write_text("notes")
    if manifest is not None:
        text = manifest if isinstance(manifest, str) else json.dumps(manifest)
        (skill / "manifest.json").write_text(text)
    return skill


def _write_json(tmpdir: str, folder: str, name: str, content) -> None:
    directory = _claude(tmpdir) / folder
    directory.mkdir(parents=True, exist_ok=True)
    text = content if isinstance(content, str) else json.dumps(content)
    (directory / f"{name}.json").write_text(text)


def test_empty_rules_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        components = detect_components(tmpdir)
        assert len(components) == 0
        assert detect_dependency_pool(tmpdir).mcp_servers == []


def test_skill_requires_marker_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write_skill(tmpdir, "real")
        _write_skill(tmpdir, "not-a-skill", marker=False)

        skills = detect_components(tmpdir).skills
        assert [s.name for s in skills] == ["real"]
        skill = skills[0]
        assert skill.kind == ComponentKind.CONTENT_TREE
        assert skill.category == Category.SKILLS
        assert skill.target_path == Path(".claude/skills/real")
        assert skill.files == ["SKILL.md", "notes.md"]
        assert skill.manifest is None


def test_skill_manifest_parsed():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write_skill(
            tmpdir,
            "reviewer",
            {"description": "Reviews", "agent": "critic", "mcpServers": ["github"], "skills": ["lint"]},
        )
        manifest = detect_components(tmpdir).skills[0].manifest
        assert manifest.agent == "critic"
        assert manifest.mcp_servers == ["github"]
        assert manifest.skills == ["lint"]
        assert manifest.has_dependencies


def test_malformed_manifest_keeps_skill_without_dependencies():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write_skill(tmpdir, "broken", "{not json")
        skills = detect_components(tmpdir).skills
        assert [s.name for s in skills] == ["broken"]
        assert skills[0].manifest is None


def test_agents_detected_by_extension():
    with tempfile.TemporaryDirectory() as tmpdir:
        agents_dir = _claude(tmpdir) / "agents"
        agents_dir.mkdir()
        (agents_dir / "critic.md").write_text("critic")
        (agents_dir / "notes.txt").write_text("ignored")

        agents = detect_components(tmpdir).agents
        assert [a.name for a in agents] == ["critic"]
        assert agents[0].target_path == Path(".claude/agents/critic.md")


def test_malformed_hook_skipped_others_kept():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write_json(tmpdir, "hooks", "good", {"PreToolUse": {"command": "echo hi"}})
        _write_json(tmpdir, "hooks", "bad", "{oops")

        hooks = detect_components(tmpdir).hooks
        assert [h.name for h in hooks] == ["good"]
        assert hooks[0].kind == ComponentKind.JSON_ENTRY
        assert hooks[0].target_key == "hooks"
        assert hooks[0].config == {"PreToolUse": {"command": "echo hi"}}


def test_hook_required_env_split_from_config():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write_json(
            tmpdir, "hooks", "notify", {"requiredEnv": ["SLACK_TOKEN"], "Stop": "notify.sh"}
        )
        hook = detect_components(tmpdir).hooks[0]
        assert hook.required_env == ["SLACK_TOKEN"]
        assert hook.config == {"Stop": "notify.sh"}


def test_pool_is_separate_from_components():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write_json(
            tmpdir, "mcp-servers", "github", {"command": "gh-mcp", "env": {"TOKEN": "${GITHUB_TOKEN}"}}
        )
        _write_json(tmpdir, "mcp-servers", "broken", "nope")

        assert len(detect_components(tmpdir)) == 0
        pool = detect_dependency_pool(tmpdir)
        assert [s.name for s in pool.mcp_servers] == ["github"]
        server = pool.get("github")
        assert server.category == Category.MCP_SERVERS
        assert server.required_env == ["GITHUB_TOKEN"]
        assert pool.get("broken") is None


def test_detect_all_joins_both_scans():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write_skill(tmpdir, "alpha")
        _write_json(tmpdir, "mcp-servers", "db", {"command": "db"})

        components, pool = detect_all(tmpdir)
        assert [s.name for s in components.skills] == ["alpha"]
        assert [s.name for s in pool.mcp_servers] == ["db"]
