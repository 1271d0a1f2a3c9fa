"""Policy module - configuration for draws and replacements."""

from expertdraw.policy.resolver import DrawPolicy

__all__ = ["DrawPolicy"]
