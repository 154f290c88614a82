"""Pluggy hook specifications for repoinit provisioning events.

Hooks are called synchronously around each ``apply``. They observe the
batch; they cannot veto it.
"""

from __future__ import annotations

from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("repoinit")
hookimpl = pluggy.HookimplMarker("repoinit")


class RepoinitHookSpec:
    """Hook specifications for the repoinit plugin system."""

    @hookspec
    def pre_apply(self, operations: list[dict[str, Any]]) -> None:
        """Called with the serialized batch before any operation is applied."""

    @hookspec
    def post_apply(
        self,
        operation_count: int,
        outcomes: list[dict[str, Any]],
        committed: bool,
    ) -> None:
        """Called after a batch was committed, rolled back, or failed.

        ``outcomes`` lists the operations that were applied before the
        batch finished or stopped; ``committed`` is False for dry runs
        and failures.
        """
