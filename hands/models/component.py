"""Component data models — what the detector finds in the rules tree.

A component is recomputed from the rules tree on every run; its only
identity is ``(category, name)``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class ComponentKind(Enum):
    """How a component is materialised in a target project."""

    CONTENT_TREE = "content_tree"  # Copied as a file or directory
    JSON_ENTRY = "json_entry"  # Merged as an entry into a shared JSON document


class Category(Enum):
    """Component categories. Values double as ledger section keys."""

    SKILLS = "skills"
    AGENTS = "agents"
    HOOKS = "hooks"
    MCP_SERVERS = "mcpServers"  # Dependency pool only, never user-selectable


# Categories a user can select directly
SELECTABLE_CATEGORIES = (Category.SKILLS, Category.AGENTS, Category.HOOKS)

# Categories that can be auto-resolved as dependencies
DEPENDENCY_CATEGORIES = (Category.MCP_SERVERS, Category.AGENTS, Category.SKILLS)


@dataclass
class Manifest:
    """A skill's declaration of what else it needs."""

    description: str = ""
    agent: str = ""
    mcp_servers: list[str] = field(default_factory=list)
    tools: list[str] = field(default_factory=list)
    skills: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Manifest:
        """Build a manifest from parsed ``manifest.json`` content.

        Fields with the wrong type are dropped rather than rejected.
        """
        agent = data.get("agent")
        return cls(
            description=data.get("description", "") if isinstance(data.get("description"), str) else "",
            agent=agent if isinstance(agent, str) else "",
            mcp_servers=_string_list(data.get("mcpServers")),
            tools=_string_list(data.get("tools")),
            skills=_string_list(data.get("skills")),
        )

    @property
    def has_dependencies(self) -> bool:
        return bool(self.agent or self.mcp_servers or self.skills)

    def dependency_hints(self) -> list[str]:
        """Short ``kind: name`` labels for display next to a skill."""
        hints = [f"mcp: {name}" for name in self.mcp_servers]
        if self.agent:
            hints.append(f"agent: {self.agent}")
        hints.extend(f"skill: {name}" for name in self.skills)
        return hints


@dataclass
class Component:
    """A single installable unit: skill, agent, hook, or MCP server."""

    name: str
    kind: ComponentKind
    category: Category
    source_path: Path

    # Content trees land at a path relative to the target project
    target_path: Path | None = None

    # JSON entries land under a key of a shared document
    target_file: Path | None = None
    target_key: str = ""
    config: dict[str, Any] = field(default_factory=dict)
    required_env: list[str] = field(default_factory=list)

    # Skills only
    manifest: Manifest | None = None
    files: list[str] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, str]:
        return (self.category.value, self.name)

    @property
    def is_content_tree(self) -> bool:
        return self.kind == ComponentKind.CONTENT_TREE


@dataclass
class ComponentSet:
    """User-facing components detected in a rules tree, by category."""

    skills: list[Component] = field(default_factory=list)
    agents: list[Component] = field(default_factory=list)
    hooks: list[Component] = field(default_factory=list)

    def by_category(self, category: Category) -> list[Component]:
        return {
            Category.SKILLS: self.skills,
            Category.AGENTS: self.agents,
            Category.HOOKS: self.hooks,
        }.get(category, [])

    def all(self) -> list[Component]:
        return [*self.skills, *self.agents, *self.hooks]

    def find(self, name: str, category: Category | None = None) -> Component | None:
        for component in self.all():
            if component.name == name and (category is None or component.category == category):
                return component
        return None

    def __len__(self) -> int:
        return len(self.skills) + len(self.agents) + len(self.hooks)


@dataclass
class DependencyPool:
    """Components that exist only as dependency targets."""

    mcp_servers: list[Component] = field(default_factory=list)

    def get(self, name: str) -> Component | None:
        for server in self.mcp_servers:
            if server.name == name:
                return server
        return None


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]
