"""Exception types raised by hands.

Most recoverable conditions (malformed JSON, dangling references) degrade
to defaults and never raise; these cover the few that must stop a run.
"""


class HandsError(Exception):
    """Base class for all hands errors."""


class WorkspaceError(HandsError):
    """Raised when the rules directory cannot be accessed."""


class ConfigError(HandsError):
    """Raised when a configuration file is invalid."""
