"""Extension layer — plugin system via pluggy.

INVARIANT: Plugin failures are warnings, never errors.
"""

from repoinit.plugins.hookspecs import hookimpl
from repoinit.plugins.manager import PluginManager

__all__ = ["PluginManager", "hookimpl"]
