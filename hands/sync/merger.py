"""Merger — marker-tagged edits inside shared JSON documents.

Two document shapes are handled:

- the endpoint config (``config.json``): ``mcpServers`` is a name-keyed
  map, last writer wins
- the settings file (``settings.json``): ``hooks`` maps an event name to an
  ordered list of handler objects; every handler hands inserts carries a
  ``_hands`` marker naming the hook that produced it

Documents that are missing or corrupt read as ``{}``. A document is only
rewritten when its content actually changed.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from hands.models.component import Category, Component
from hands.sync.ledger import MetadataStore
from hands.utils.file_scanner import compute_hash

logger = logging.getLogger(__name__)

HOOKS_KEY = "hooks"
MCP_SERVERS_KEY = "mcpServers"
MARKER = "_hands"


def read_json_file(path: str | Path, default: Any = None) -> Any:
    """Read a JSON document, returning ``default`` if missing or corrupt."""
    path = Path(path)
    if default is None:
        default = {}
    if not path.is_file():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        logger.warning("Ignoring unreadable JSON document %s: %s", path, e)
        return default


def write_json_file(path: str | Path, content: Any) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(content, indent=2) + "\n", encoding="utf-8")


def _read_document(path: Path) -> dict[str, Any]:
    document = read_json_file(path, {})
    return document if isinstance(document, dict) else {}


def _write_if_changed(path: Path, before: dict[str, Any], after: dict[str, Any]) -> bool:
    if before == after and Path(path).is_file():
        return False
    write_json_file(path, after)
    return True


# ── Endpoint registry ────────────────────────────────────────────────


def add_mcp_server(target_file: str | Path, name: str, config: dict[str, Any]) -> bool:
    """Add or replace an MCP server entry. Returns True if the file changed."""
    document = _read_document(Path(target_file))
    before = copy.deepcopy(document)
    servers = document.get(MCP_SERVERS_KEY)
    if not isinstance(servers, dict):
        servers = document[MCP_SERVERS_KEY] = {}
    servers[name] = config
    return _write_if_changed(Path(target_file), before, document)


def remove_mcp_server(target_file: str | Path, name: str) -> bool:
    """Delete an MCP server entry. Returns True if the file changed."""
    path = Path(target_file)
    document = _read_document(path)
    servers = document.get(MCP_SERVERS_KEY)
    if not isinstance(servers, dict) or name not in servers:
        return False
    del servers[name]
    write_json_file(path, document)
    return True


def get_mcp_server(target_file: str | Path, name: str) -> dict[str, Any] | None:
    servers = _read_document(Path(target_file)).get(MCP_SERVERS_KEY)
    if not isinstance(servers, dict):
        return None
    return servers.get(name)


# ── Event-handler registry ───────────────────────────────────────────


def get_hooks(target_file: str | Path) -> dict[str, Any]:
    hooks = _read_document(Path(target_file)).get(HOOKS_KEY)
    return hooks if isinstance(hooks, dict) else {}


def _mark(handler: Any, hook_name: str) -> dict[str, Any]:
    if isinstance(handler, dict):
        return {**handler, MARKER: hook_name}
    return {"command": handler, MARKER: hook_name}


def _is_marked(handler: Any, hook_name: str) -> bool:
    return isinstance(handler, dict) and handler.get(MARKER) == hook_name


def merge_hook(target_file: str | Path, hook_name: str, hook_config: dict[str, Any]) -> bool:
    """Merge one hook's ``{event: handler(s)}`` map into the settings file.

    For each event, handlers already carrying this hook's marker are
    replaced in place, keeping their positions; extra handlers are inserted
    after the last replaced one (or appended), surplus marked ones are
    dropped. Events the hook no longer declares lose its handlers.

    Returns True if the file changed.
    """
    path = Path(target_file)
    settings = _read_document(path)
    before = copy.deepcopy(settings)
    hooks = settings.get(HOOKS_KEY)
    if hooks is None:
        hooks = settings[HOOKS_KEY] = {}
    elif not isinstance(hooks, dict):
        logger.warning("Not merging %s into %s: 'hooks' is not an object", hook_name, path)
        return False

    for event, handlers in hook_config.items():
        existing = hooks.get(event)
        if existing is None:
            existing = hooks[event] = []
        elif not isinstance(existing, list):
            logger.warning(
                "Leaving %s event %r alone: expected a list of handlers, found %s",
                path,
                event,
                type(existing).__name__,
            )
            continue

        new_handlers = [
            _mark(h, hook_name) for h in (handlers if isinstance(handlers, list) else [handlers])
        ]
        positions = [i for i, h in enumerate(existing) if _is_marked(h, hook_name)]

        for position, handler in zip(positions, new_handlers):
            existing[position] = handler

        if len(new_handlers) > len(positions):
            insert_at = positions[-1] + 1 if positions else len(existing)
            existing[insert_at:insert_at] = new_handlers[len(positions):]
        else:
            for position in reversed(positions[len(new_handlers):]):
                del existing[position]

        if not existing:
            del hooks[event]

    _strip_hook(hooks, hook_name, keep_events=set(hook_config))
    return _write_if_changed(path, before, settings)


def remove_hook(target_file: str | Path, hook_name: str) -> bool:
    """Remove every handler carrying this hook's marker.

    Event keys left with an empty list are deleted. Returns True if the
    file changed.
    """
    path = Path(target_file)
    settings = _read_document(path)
    hooks = settings.get(HOOKS_KEY)
    if not isinstance(hooks, dict):
        return False
    before = copy.deepcopy(settings)
    _strip_hook(hooks, hook_name)
    return _write_if_changed(path, before, settings)


def _strip_hook(hooks: dict[str, Any], hook_name: str, keep_events: set[str] = frozenset()) -> None:
    for event in list(hooks):
        if event in keep_events or not isinstance(hooks[event], list):
            continue
        remaining = [h for h in hooks[event] if not _is_marked(h, hook_name)]
        if len(remaining) == len(hooks[event]):
            continue
        if remaining:
            hooks[event] = remaining
        else:
            del hooks[event]


def has_hook(target_file: str | Path, hook_name: str) -> bool:
    """True if any handler in the settings file carries this hook's marker."""
    return any(
        isinstance(handlers, list) and any(_is_marked(h, hook_name) for h in handlers)
        for handlers in get_hooks(target_file).values()
    )


# ── Hook sync ────────────────────────────────────────────────────────


@dataclass
class HookSyncResult:
    """Names of hooks touched by a sync."""

    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)


def sync_hooks(
    target_file: str | Path,
    selected_hooks: list[Component],
    store: MetadataStore,
    untouched: set[str] | None = None,
) -> HookSyncResult:
    """Install the selected hooks and remove tracked ones that were deselected.

    A selected hook is "added" if no handler carried its marker before the
    merge, "updated" if one did and its config hash differs from the
    tracked hash. Either way the merge runs and the install is tracked
    with the new hash; unchanged hooks cause no writes. Tracked hooks named
    in ``untouched`` are neither merged nor removed.
    """
    result = HookSyncResult()
    category = Category.HOOKS.value
    tracked = store.get_tracked_components(category)
    selected_names = {hook.name for hook in selected_hooks}
    untouched = untouched or set()

    for hook in selected_hooks:
        new_hash = compute_hash(hook.config)
        entry = tracked.get(hook.name)

        if not has_hook(target_file, hook.name):
            result.added.append(hook.name)
        elif entry is not None and entry.hash != new_hash:
            result.updated.append(hook.name)

        merge_hook(target_file, hook.name, hook.config)
        if entry is None or entry.hash != new_hash or hook.name in result.added:
            store.track_install(hook, new_hash)
        logger.debug("Synced hook %s", hook.name)

    for name in tracked:
        if name in selected_names or name in untouched:
            continue
        remove_hook(target_file, name)
        store.track_uninstall(category, name)
        result.removed.append(name)
        logger.info("Removed hook %s", name)

    return result
