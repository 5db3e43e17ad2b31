"""hands — distribute skills, agents and hooks from a shared rules tree."""

__version__ = "3.0.0"
