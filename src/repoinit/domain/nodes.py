"""Node model — one item of the content hierarchy."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Node:
    """A node as currently stored in the repository.

    ``mixins`` holds only the explicitly assigned mixin types, never
    the ones inherited through the primary type.
    """

    path: str
    primary_type: str
    mixins: frozenset[str] = field(default_factory=frozenset)

    @property
    def name(self) -> str:
        return self.path.rpartition("/")[2]
