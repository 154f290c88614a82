"""ProvisionService — parse a repoinit script and apply it atomically.

Pipeline: PARSE → CHECK → PRE_APPLY hook → APPLY (one session) → COMMIT or
DISCARD → POST_APPLY hook → RESPOND.

A failed batch leaves the repository exactly as it was: the session is
closed without commit, which discards the operations that did succeed.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from repoinit.domain.errors import (
    OperationFailedError,
    ScriptParseError,
    UnsupportedOperationError,
)
from repoinit.domain.operations import dump_operations
from repoinit.domain.script import parse_script
from repoinit.services._helpers import error_result
from repoinit.services.base import BaseService
from repoinit.services.processor import OperationProcessor
from repoinit.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from repoinit.domain.operations import Operation


class ProvisionService(BaseService):
    """Turns repoinit scripts into committed repository state."""

    @staticmethod
    def parse(text: str) -> ServiceResult:
        """Parse *text* without touching the repository."""
        op = "parse"
        try:
            operations = parse_script(text)
        except ScriptParseError as exc:
            return error_result(op, exc)
        return ServiceResult(
            ok=True,
            op=op,
            data={"count": len(operations), "operations": dump_operations(operations)},
        )

    def apply(self, text: str, *, dry_run: bool = False) -> ServiceResult:
        """Parse *text* and apply it. Nothing is committed on any failure."""
        try:
            operations = parse_script(text)
        except ScriptParseError as exc:
            return error_result("apply", exc)
        return self.apply_operations(operations, dry_run=dry_run)

    def apply_file(self, path: Path, *, dry_run: bool = False) -> ServiceResult:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            return ServiceResult(
                ok=False,
                op="apply",
                error=ServiceError(
                    code="READ_ERROR",
                    message=f"Cannot read script {path}: {exc.strerror or exc}",
                    detail={"path": str(path)},
                ),
            )
        return self.apply(text, dry_run=dry_run)

    def apply_operations(
        self, operations: Sequence[Operation], *, dry_run: bool = False
    ) -> ServiceResult:
        """Apply an already-parsed batch in one session."""
        op = "apply"
        warnings: list[str] = []
        started = time.perf_counter()
        processor = OperationProcessor(
            default_node_type=self._repository.settings.nodes.default_node_type
        )
        try:
            processor.check(operations)
        except UnsupportedOperationError as exc:
            return error_result(op, exc, data={"committed": False})

        self._dispatch_event(
            "pre_apply", {"operations": dump_operations(list(operations))}, warnings
        )

        with self._repository.session() as session:
            try:
                report = processor.apply(session, operations)
            except OperationFailedError as exc:
                self._post_apply(len(operations), exc.detail["applied"], False, warnings)
                return error_result(op, exc, data={"committed": False}, warnings=warnings)

            outcomes = [o.model_dump(mode="json") for o in report.outcomes]
            if dry_run:
                session.rollback()
            else:
                try:
                    session.commit()
                except SQLAlchemyError as exc:
                    self._post_apply(len(operations), outcomes, False, warnings)
                    return ServiceResult(
                        ok=False,
                        op=op,
                        data={"committed": False},
                        warnings=warnings,
                        error=ServiceError(
                            code="REPOSITORY_ERROR",
                            message=f"Commit failed: {exc}",
                        ),
                    )

        committed = not dry_run
        self._post_apply(len(operations), outcomes, committed, warnings)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "count": len(operations),
                "changed": report.changed,
                "counts": report.counts(),
                "outcomes": outcomes,
                "committed": committed,
                "dry_run": dry_run,
            },
            warnings=warnings,
            meta={"duration_ms": round((time.perf_counter() - started) * 1000, 2)},
        )

    def _post_apply(
        self,
        operation_count: int,
        outcomes: list[dict[str, Any]],
        committed: bool,
        warnings: list[str],
    ) -> None:
        self._dispatch_event(
            "post_apply",
            {"operation_count": operation_count, "outcomes": outcomes, "committed": committed},
            warnings,
        )
