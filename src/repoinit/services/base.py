"""BaseService — abstract foundation for all repoinit services.

Every service receives a :class:`Repository` at construction time.
Services own their session boundaries via ``self._repository.session()``
and decide themselves whether to commit.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from repoinit.infrastructure.repository import Repository

logger = logging.getLogger(__name__)


class BaseService:
    """Abstract base for all service-layer classes.

    Usage::

        class ProvisionService(BaseService):
            def apply(self, text: str) -> ServiceResult:
                with self._repository.session() as session:
                    ...
                    session.commit()
    """

    def __init__(self, repository: Repository) -> None:
        self._repository = repository

    def _dispatch_event(
        self,
        hook_name: str,
        payload: dict[str, Any],
        warnings: list[str],
    ) -> None:
        """Call a plugin hook. No-op if plugins are not initialized.

        INVARIANT: Plugin failures are warnings, never errors.
        """
        pm = self._repository.plugin_manager
        if pm is None:
            return
        try:
            getattr(pm.hook, hook_name)(**payload)
        except Exception:
            logger.debug("Plugin hook %s failed", hook_name, exc_info=True)
            warnings.append(f"Plugin hook {hook_name} failed")
