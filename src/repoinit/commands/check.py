"""Command group: read-only checks of principals and nodes."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from repoinit.commands._base import RepoinitGroup

if TYPE_CHECKING:
    from repoinit.commands._context import AppContext


@click.group(
    cls=RepoinitGroup,
    examples="""\
  repoinit check user alice --path-contains /home/users/a
  repoinit check service-user content-reader
  repoinit check user bob --absent
  repoinit check disabled old-service --reason "retired"
  repoinit check node /content/site --type sling:Folder --mixin mix:title""",
)
def check() -> None:
    """Verify principals and nodes (exit 1 on mismatch)."""


@check.command("user")
@click.argument("principal_id")
@click.option("--absent", is_flag=True, help="Expect the user not to exist.")
@click.option("--path-contains", default=None, help="Substring the user's path must contain.")
@click.pass_obj
def check_user(
    app: AppContext, principal_id: str, absent: bool, path_contains: str | None
) -> None:
    """Check that PRINCIPAL_ID is a regular user."""
    from repoinit.services.verify import VerifyService

    app.emit(
        VerifyService(app.repository).check_user(
            principal_id, absent=absent, path_contains=path_contains
        )
    )


@check.command("service-user")
@click.argument("principal_id")
@click.option("--absent", is_flag=True, help="Expect the service user not to exist.")
@click.option("--path-contains", default=None, help="Substring the user's path must contain.")
@click.pass_obj
def check_service_user(
    app: AppContext, principal_id: str, absent: bool, path_contains: str | None
) -> None:
    """Check that PRINCIPAL_ID is a service user."""
    from repoinit.services.verify import VerifyService

    app.emit(
        VerifyService(app.repository).check_service_user(
            principal_id, absent=absent, path_contains=path_contains
        )
    )


@check.command("disabled")
@click.argument("principal_id")
@click.option("--reason", default=None, help="Expected disable reason.")
@click.pass_obj
def check_disabled(app: AppContext, principal_id: str, reason: str | None) -> None:
    """Check that PRINCIPAL_ID is disabled."""
    from repoinit.services.verify import VerifyService

    app.emit(VerifyService(app.repository).check_disabled(principal_id, reason=reason))


@check.command("enabled")
@click.argument("principal_id")
@click.pass_obj
def check_enabled(app: AppContext, principal_id: str) -> None:
    """Check that PRINCIPAL_ID is enabled."""
    from repoinit.services.verify import VerifyService

    app.emit(VerifyService(app.repository).check_enabled(principal_id))


@check.command("node")
@click.argument("path")
@click.option("--type", "primary_type", default=None, help="Expected primary type.")
@click.option(
    "--mixin",
    "mixins",
    multiple=True,
    help="Expected mixin (repeatable). The node's set must match exactly.",
)
@click.option("--no-mixins", is_flag=True, help="Expect the node to carry no mixins.")
@click.pass_obj
def check_node(
    app: AppContext,
    path: str,
    primary_type: str | None,
    mixins: tuple[str, ...],
    no_mixins: bool,
) -> None:
    """Check that PATH exists, optionally with an exact type and mixin set."""
    from repoinit.services.verify import VerifyService

    expected: tuple[str, ...] | None = mixins or None
    if no_mixins:
        expected = ()
    app.emit(
        VerifyService(app.repository).check_node(path, primary_type=primary_type, mixins=expected)
    )
