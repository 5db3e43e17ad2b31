"""Dependency resolver — expand selected skills into everything they need.

Skills can declare dependencies on:

- MCP servers (installed from the dependency pool)
- one agent (auto-selected unless the user already selected it)
- other skills (walked transitively, with cycle detection)

The walk is an explicit depth-first traversal with three colours:
white (unvisited), grey (on the active chain) and black (done). Reaching a
grey skill is a cycle; it is reported for that chain and the walk backs
off along that path only. A black skill is never expanded again, but every
call site still adds its requirer, so ``required_by`` lists every skill
that references a shared dependency.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from hands.models.component import Component, DependencyPool

WHITE, GREY, BLACK = 0, 1, 2


@dataclass
class ResolvedDependency:
    """A component pulled in by one or more selected skills."""

    component: Component
    required_by: set[str] = field(default_factory=set)

    @property
    def name(self) -> str:
        return self.component.name


@dataclass
class Resolution:
    """Everything the selected skills require, plus problems found."""

    mcp_servers: dict[str, ResolvedDependency] = field(default_factory=dict)
    agents: dict[str, ResolvedDependency] = field(default_factory=dict)
    skills: dict[str, ResolvedDependency] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """False when any circular dependency was found."""
        return not self.errors

    @property
    def has_dependencies(self) -> bool:
        return bool(self.mcp_servers or self.agents or self.skills)

    def by_category(self) -> dict[str, dict[str, ResolvedDependency]]:
        return {"mcpServers": self.mcp_servers, "agents": self.agents, "skills": self.skills}


def _require(
    target: dict[str, ResolvedDependency], component: Component, requirer: str
) -> None:
    entry = target.get(component.name)
    if entry is None:
        entry = target[component.name] = ResolvedDependency(component)
    entry.required_by.add(requirer)


def resolve_dependencies(
    selected_skills: list[Component],
    all_skills: list[Component],
    selected_agents: list[Component],
    all_agents: list[Component],
    pool: DependencyPool,
) -> Resolution:
    """Resolve all dependencies for the user's selection.

    Args:
        selected_skills: Skills the user explicitly selected.
        all_skills: Every skill in the rules tree.
        selected_agents: Agents the user explicitly selected.
        all_agents: Every agent in the rules tree.
        pool: The MCP server dependency pool.
    """
    result = Resolution()

    servers = {s.name: s for s in pool.mcp_servers}
    agents = {a.name: a for a in all_agents}
    skills = {s.name: s for s in all_skills}
    for skill in selected_skills:
        skills.setdefault(skill.name, skill)

    selected_skill_names = {s.name for s in selected_skills}
    selected_agent_names = {a.name for a in selected_agents}

    color: dict[str, int] = {}

    def enter(skill: Component) -> list[str]:
        """Record a skill's endpoint and agent needs; return its skill deps."""
        color[skill.name] = GREY
        manifest = skill.manifest
        if manifest is None:
            return []

        for server_name in manifest.mcp_servers:
            if server_name in servers:
                _require(result.mcp_servers, servers[server_name], skill.name)
            else:
                result.warnings.append(
                    f'Skill "{skill.name}" requires MCP server "{server_name}" '
                    "which is not in the dependency pool"
                )

        if manifest.agent:
            if manifest.agent not in agents:
                result.warnings.append(
                    f'Skill "{skill.name}" requires agent "{manifest.agent}" which is not available'
                )
            elif manifest.agent not in selected_agent_names:
                _require(result.agents, agents[manifest.agent], skill.name)

        return list(manifest.skills)

    for root in selected_skills:
        if color.get(root.name, WHITE) != WHITE:
            continue

        # Each frame: (skill name, remaining skill deps to visit)
        stack: list[tuple[str, list[str]]] = [(root.name, enter(root))]
        while stack:
            name, pending = stack[-1]
            if not pending:
                color[name] = BLACK
                stack.pop()
                continue

            dep_name = pending.pop(0)
            dep = skills.get(dep_name)
            if dep is None:
                result.warnings.append(
                    f'Skill "{name}" requires skill "{dep_name}" which is not available'
                )
                continue

            if dep_name not in selected_skill_names:
                _require(result.skills, dep, name)

            state = color.get(dep_name, WHITE)
            if state == GREY:
                chain = [frame[0] for frame in stack]
                cycle = chain[chain.index(dep_name):] + [dep_name]
                result.errors.append(f"Circular dependency: {' -> '.join(cycle)}")
            elif state == WHITE:
                stack.append((dep_name, enter(dep)))

    return result
