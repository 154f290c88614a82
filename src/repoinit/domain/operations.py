"""Operation model — one immutable variant per repoinit directive.

Operations are produced by the script parser and consumed exactly once
by the operation processor. They are frozen pydantic models tagged by
``kind`` so a batch can be serialized to JSON and read back as the same
closed set of variants.

INVARIANT: The processor never mutates an operation.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _BaseOperation(BaseModel):
    """Shared behaviour for all operation variants."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: str

    @property
    def target(self) -> str:
        """The principal id or path this operation acts on."""
        raise NotImplementedError

    def describe(self) -> str:
        """One-line human description, used in logs and error messages."""
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------


class _PrincipalOperation(_BaseOperation):
    principal_id: str = Field(min_length=1)

    @property
    def target(self) -> str:
        return self.principal_id


class CreateUser(_PrincipalOperation):
    kind: Literal["create_user"] = "create_user"
    path: str | None = None
    password: str | None = Field(default=None, repr=False)

    def describe(self) -> str:
        suffix = f" with path {self.path}" if self.path else ""
        return f"create user {self.principal_id}{suffix}"


class CreateServiceUser(_PrincipalOperation):
    kind: Literal["create_service_user"] = "create_service_user"
    path: str | None = None

    def describe(self) -> str:
        suffix = f" with path {self.path}" if self.path else ""
        return f"create service user {self.principal_id}{suffix}"


class DeleteUser(_PrincipalOperation):
    kind: Literal["delete_user"] = "delete_user"

    def describe(self) -> str:
        return f"delete user {self.principal_id}"


class DeleteServiceUser(_PrincipalOperation):
    kind: Literal["delete_service_user"] = "delete_service_user"

    def describe(self) -> str:
        return f"delete service user {self.principal_id}"


class DisableUser(_PrincipalOperation):
    kind: Literal["disable_user"] = "disable_user"
    reason: str = ""
    service: bool = False

    def describe(self) -> str:
        label = "service user" if self.service else "user"
        return f"disable {label} {self.principal_id}"


class EnableUser(_PrincipalOperation):
    kind: Literal["enable_user"] = "enable_user"
    service: bool = False

    def describe(self) -> str:
        label = "service user" if self.service else "user"
        return f"enable {label} {self.principal_id}"


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


class CreateNode(_BaseOperation):
    """Ensure a node exists, creating missing ancestors.

    ``primary_type`` and ``mixins`` left as None mean "don't care" when
    the node already exists; an explicit empty ``mixins`` tuple means the
    node must carry no mixins at all.
    """

    kind: Literal["create_node"] = "create_node"
    path: str
    primary_type: str | None = None
    mixins: tuple[str, ...] | None = None
    intermediate_type: str | None = None

    @property
    def target(self) -> str:
        return self.path

    def describe(self) -> str:
        spec: list[str] = []
        if self.primary_type:
            spec.append(self.primary_type)
        if self.mixins:
            spec.append(f"mixin {','.join(self.mixins)}")
        return f"create path {self.path}" + (f"({' '.join(spec)})" if spec else "")


class DeleteNode(_BaseOperation):
    kind: Literal["delete_node"] = "delete_node"
    path: str

    @property
    def target(self) -> str:
        return self.path

    def describe(self) -> str:
        return f"delete path {self.path}"


class AddMixins(_BaseOperation):
    kind: Literal["add_mixins"] = "add_mixins"
    paths: tuple[str, ...] = Field(min_length=1)
    mixins: tuple[str, ...] = Field(min_length=1)

    @property
    def target(self) -> str:
        return ", ".join(self.paths)

    def describe(self) -> str:
        return f"add mixin {','.join(self.mixins)} to {self.target}"


class RemoveMixins(_BaseOperation):
    kind: Literal["remove_mixins"] = "remove_mixins"
    paths: tuple[str, ...] = Field(min_length=1)
    mixins: tuple[str, ...] = Field(min_length=1)

    @property
    def target(self) -> str:
        return ", ".join(self.paths)

    def describe(self) -> str:
        return f"remove mixin {','.join(self.mixins)} from {self.target}"


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class RegisterNamespace(_BaseOperation):
    kind: Literal["register_namespace"] = "register_namespace"
    prefix: str = Field(min_length=1)
    uri: str = Field(min_length=1)

    @property
    def target(self) -> str:
        return self.prefix

    def describe(self) -> str:
        return f"register namespace ({self.prefix}) {self.uri}"


class RegisterNodeTypes(_BaseOperation):
    """Register the node types of one CND block (markers optional)."""

    kind: Literal["register_node_types"] = "register_node_types"
    cnd: str

    @property
    def target(self) -> str:
        return "nodetypes"

    def describe(self) -> str:
        return "register nodetypes"


# ---------------------------------------------------------------------------
# Access control
# ---------------------------------------------------------------------------


class AclEntry(BaseModel):
    """One ``allow``/``deny`` line of a ``set ACL`` block."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    action: Literal["allow", "deny"]
    privileges: tuple[str, ...] = Field(min_length=1)
    paths: tuple[str, ...] = Field(min_length=1)

    def describe(self) -> str:
        return f"{self.action} {','.join(self.privileges)} on {', '.join(self.paths)}"


class SetAcl(_BaseOperation):
    kind: Literal["set_acl"] = "set_acl"
    principals: tuple[str, ...] = Field(min_length=1)
    entries: tuple[AclEntry, ...] = Field(min_length=1)

    @property
    def target(self) -> str:
        return ", ".join(self.principals)

    def describe(self) -> str:
        return f"set ACL for {self.target}"


# ---------------------------------------------------------------------------
# Closed union
# ---------------------------------------------------------------------------

Operation = Annotated[
    CreateUser
    | CreateServiceUser
    | DeleteUser
    | DeleteServiceUser
    | DisableUser
    | EnableUser
    | CreateNode
    | DeleteNode
    | AddMixins
    | RemoveMixins
    | RegisterNamespace
    | RegisterNodeTypes
    | SetAcl,
    Field(discriminator="kind"),
]

OPERATION_TYPES: tuple[type[_BaseOperation], ...] = get_args(get_args(Operation)[0])

_OPERATIONS_ADAPTER: TypeAdapter[list[Operation]] = TypeAdapter(list[Operation])


def dump_operations(operations: list[Operation]) -> list[dict[str, Any]]:
    """Serialize *operations* to JSON-compatible dicts (passwords excluded)."""
    return [op.model_dump(mode="json", exclude={"password"}) for op in operations]


def load_operations(data: list[dict[str, Any]]) -> list[Operation]:
    """Validate a list of dicts back into operation variants."""
    return _OPERATIONS_ADAPTER.validate_python(data)
