"""Environment validation for hooks and MCP servers.

A component declares the variables it needs in two ways:

- an explicit ``requiredEnv`` list at the top level of its JSON file
  (stripped from the config before it is merged anywhere)
- ``${VAR}`` placeholders inside an ``env`` mapping of its config, the
  usual MCP server convention
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from hands.models.component import Component

REQUIRED_ENV_KEY = "requiredEnv"

_PLACEHOLDER_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass
class EnvValidation:
    missing_vars: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.missing_vars


def extract_required_env(data: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Split a raw hook/server file into (config, required variable names)."""
    config = {k: v for k, v in data.items() if k != REQUIRED_ENV_KEY}
    declared = data.get(REQUIRED_ENV_KEY)
    names = [n for n in declared if isinstance(n, str)] if isinstance(declared, list) else []

    env = config.get("env")
    if isinstance(env, dict):
        for value in env.values():
            if isinstance(value, str):
                names.extend(_PLACEHOLDER_RE.findall(value))

    return config, list(dict.fromkeys(names))


def validate_component_env(
    component: Component, environ: Mapping[str, str] | None = None
) -> EnvValidation:
    """Report which of a component's required variables are absent."""
    environ = os.environ if environ is None else environ
    return EnvValidation(missing_vars=[name for name in component.required_env if name not in environ])


def format_env_warning(missing_vars: list[str], name: str) -> str:
    return f"{name} needs environment variables that are not set: {', '.join(missing_vars)}"
