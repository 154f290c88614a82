"""Script parser — repoinit text to an ordered operation sequence.

The language is line oriented. Blank lines and ``#`` comments are
ignored; two directives span several lines (``register nodetypes``
with its CND block, and ``set ACL ... end``)::

    create service user content-reader with path system/content
    create path (sling:Folder) /content/site(nt:unstructured mixin mix:title)
    set ACL for content-reader
        allow jcr:read on /content
    end

INVARIANT: Parsing either yields the complete sequence or raises
:class:`ScriptParseError`. The processor never sees malformed input.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from repoinit.domain.cnd import CND_END_MARKER, CND_START_MARKER, parse_cnd
from repoinit.domain.errors import CndSyntaxError, InvalidPathError, ScriptParseError
from repoinit.domain.operations import (
    AclEntry,
    AddMixins,
    CreateNode,
    CreateServiceUser,
    CreateUser,
    DeleteNode,
    DeleteServiceUser,
    DeleteUser,
    DisableUser,
    EnableUser,
    Operation,
    RegisterNamespace,
    RegisterNodeTypes,
    RemoveMixins,
    SetAcl,
)
from repoinit.domain.paths import normalize_path

_NAME_PATTERN = re.compile(r"^[^\s,\"'()]+$")
_USER_OPTION_PATTERN = re.compile(r"\s*with\s+(password|path)\s+(\S+)")
_ACL_LINE_PATTERN = re.compile(r"^(allow|deny)\s+(\S+(?:\s*,\s*\S+)*)\s+on\s+(.+)$")

_CREATE_SERVICE_USER = re.compile(r"^create service user\s+(.+?)(?:\s+with\s+path\s+(\S+))?$")
_CREATE_USER = re.compile(r"^create user\s+(\S+)(.*)$")
_DELETE_SERVICE_USER = re.compile(r"^delete service user\s+(.+)$")
_DELETE_USER = re.compile(r"^delete user\s+(.+)$")
_DISABLE_USER = re.compile(r'^disable\s+(service\s+)?user\s+(\S+?)\s*(?::\s*"([^"]*)")?$')
_ENABLE_USER = re.compile(r"^enable\s+(service\s+)?user\s+(\S+)$")
_CREATE_PATH = re.compile(r"^create path\s+(?:\(\s*([^)\s]+)\s*\)\s*)?(/.*)$")
_DELETE_PATH = re.compile(r"^delete path\s+(.+)$")
_ADD_MIXIN = re.compile(r"^add mixin\s+(.+?)\s+to\s+(.+)$")
_REMOVE_MIXIN = re.compile(r"^remove mixin\s+(.+?)\s+from\s+(.+)$")
_REGISTER_NAMESPACE = re.compile(r"^register namespace\s*\(\s*([^)\s]+)\s*\)\s*(\S+)$")
_REGISTER_NODETYPES = re.compile(r"^register nodetypes$")
_SET_ACL = re.compile(r"^set ACL for\s+(.+)$")


@dataclass(frozen=True)
class _PathSegment:
    name: str
    primary_type: str | None = None
    mixins: tuple[str, ...] | None = None


class _ScriptParser:
    """Single-use cursor over the script lines."""

    def __init__(self, text: str) -> None:
        self._lines = text.replace("\r\n", "\n").split("\n")
        self._pos = 0
        self._operations: list[Operation] = []
        self._rules: list[tuple[re.Pattern[str], Callable[[re.Match[str], int], None]]] = [
            (_CREATE_SERVICE_USER, self._create_service_user),
            (_CREATE_USER, self._create_user),
            (_DELETE_SERVICE_USER, self._delete_service_user),
            (_DELETE_USER, self._delete_user),
            (_DISABLE_USER, self._disable_user),
            (_ENABLE_USER, self._enable_user),
            (_CREATE_PATH, self._create_path),
            (_DELETE_PATH, self._delete_path),
            (_ADD_MIXIN, self._add_mixin),
            (_REMOVE_MIXIN, self._remove_mixin),
            (_REGISTER_NAMESPACE, self._register_namespace),
            (_REGISTER_NODETYPES, self._register_nodetypes),
            (_SET_ACL, self._set_acl),
        ]

    def parse(self) -> list[Operation]:
        while self._pos < len(self._lines):
            lineno = self._pos + 1
            line = self._lines[self._pos].strip()
            self._pos += 1
            if not line or line.startswith("#"):
                continue
            for pattern, handler in self._rules:
                match = pattern.match(line)
                if match is not None:
                    handler(match, lineno)
                    break
            else:
                msg = f"Unrecognized statement: {line!r}"
                raise ScriptParseError(msg, line=lineno)
        return self._operations

    # ------------------------------------------------------------------
    # Principals
    # ------------------------------------------------------------------

    def _create_service_user(self, match: re.Match[str], lineno: int) -> None:
        path = match.group(2)
        for name in _names(match.group(1), lineno):
            self._operations.append(CreateServiceUser(principal_id=name, path=path))

    def _create_user(self, match: re.Match[str], lineno: int) -> None:
        name = _names(match.group(1), lineno)[0]
        rest = match.group(2)
        options = dict(_USER_OPTION_PATTERN.findall(rest))
        if _USER_OPTION_PATTERN.sub("", rest).strip():
            msg = f"Unexpected text after user name: {rest.strip()!r}"
            raise ScriptParseError(msg, line=lineno)
        self._operations.append(
            CreateUser(
                principal_id=name,
                password=options.get("password"),
                path=options.get("path"),
            )
        )

    def _delete_service_user(self, match: re.Match[str], lineno: int) -> None:
        for name in _names(match.group(1), lineno):
            self._operations.append(DeleteServiceUser(principal_id=name))

    def _delete_user(self, match: re.Match[str], lineno: int) -> None:
        for name in _names(match.group(1), lineno):
            self._operations.append(DeleteUser(principal_id=name))

    def _disable_user(self, match: re.Match[str], lineno: int) -> None:
        name = _names(match.group(2), lineno)[0]
        self._operations.append(
            DisableUser(
                principal_id=name,
                reason=match.group(3) or "",
                service=match.group(1) is not None,
            )
        )

    def _enable_user(self, match: re.Match[str], lineno: int) -> None:
        name = _names(match.group(2), lineno)[0]
        self._operations.append(EnableUser(principal_id=name, service=match.group(1) is not None))

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def _create_path(self, match: re.Match[str], lineno: int) -> None:
        default_type = match.group(1)
        segments = _path_segments(match.group(2).strip(), lineno)
        if not segments:
            self._operations.append(CreateNode(path="/", primary_type=default_type))
            return

        current = ""
        for i, segment in enumerate(segments):
            current = f"{current}/{segment.name}"
            is_leaf = i == len(segments) - 1
            explicit = segment.primary_type is not None or segment.mixins is not None
            if not (explicit or is_leaf):
                continue
            self._operations.append(
                CreateNode(
                    path=_path(current, lineno),
                    primary_type=segment.primary_type or default_type,
                    mixins=segment.mixins,
                    intermediate_type=default_type,
                )
            )

    def _delete_path(self, match: re.Match[str], lineno: int) -> None:
        for path in _paths(match.group(1), lineno):
            self._operations.append(DeleteNode(path=path))

    def _add_mixin(self, match: re.Match[str], lineno: int) -> None:
        self._operations.append(
            AddMixins(
                mixins=tuple(_names(match.group(1), lineno)),
                paths=tuple(_paths(match.group(2), lineno)),
            )
        )

    def _remove_mixin(self, match: re.Match[str], lineno: int) -> None:
        self._operations.append(
            RemoveMixins(
                mixins=tuple(_names(match.group(1), lineno)),
                paths=tuple(_paths(match.group(2), lineno)),
            )
        )

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _register_namespace(self, match: re.Match[str], lineno: int) -> None:
        self._operations.append(RegisterNamespace(prefix=match.group(1), uri=match.group(2)))

    def _register_nodetypes(self, _match: re.Match[str], lineno: int) -> None:
        start = self._next_content_line()
        if start is None or self._lines[start].strip() != CND_START_MARKER:
            msg = f"Expected {CND_START_MARKER!r} after 'register nodetypes'"
            raise ScriptParseError(msg, line=lineno)

        body: list[str] = []
        for i in range(start + 1, len(self._lines)):
            if self._lines[i].strip() == CND_END_MARKER:
                self._pos = i + 1
                cnd = "\n".join(body)
                try:
                    parse_cnd(cnd)
                except CndSyntaxError as exc:
                    offset = start + 1 + (exc.line or 1)
                    raise CndSyntaxError(exc.reason, line=offset) from exc
                self._operations.append(RegisterNodeTypes(cnd=cnd))
                return
            body.append(self._lines[i])

        msg = f"Missing {CND_END_MARKER!r} for nodetypes block"
        raise ScriptParseError(msg, line=start + 1)

    # ------------------------------------------------------------------
    # Access control
    # ------------------------------------------------------------------

    def _set_acl(self, match: re.Match[str], lineno: int) -> None:
        principals = tuple(_names(match.group(1), lineno))
        entries: list[AclEntry] = []
        while self._pos < len(self._lines):
            entry_lineno = self._pos + 1
            line = self._lines[self._pos].strip()
            self._pos += 1
            if not line or line.startswith("#"):
                continue
            if line == "end":
                if not entries:
                    msg = "Empty 'set ACL' block"
                    raise ScriptParseError(msg, line=lineno)
                self._operations.append(SetAcl(principals=principals, entries=tuple(entries)))
                return
            acl = _ACL_LINE_PATTERN.match(line)
            if acl is None:
                msg = f"Expected 'allow|deny <privileges> on <paths>', got {line!r}"
                raise ScriptParseError(msg, line=entry_lineno)
            entries.append(
                AclEntry(
                    action=acl.group(1),  # type: ignore[arg-type]
                    privileges=tuple(_names(acl.group(2), entry_lineno)),
                    paths=tuple(_paths(acl.group(3), entry_lineno)),
                )
            )

        msg = "Missing 'end' for 'set ACL' block"
        raise ScriptParseError(msg, line=lineno)

    def _next_content_line(self) -> int | None:
        for i in range(self._pos, len(self._lines)):
            if self._lines[i].strip():
                return i
        return None


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------


def _names(raw: str, lineno: int) -> list[str]:
    """Split a comma-separated list of names, rejecting empty or odd tokens."""
    names = [n.strip() for n in raw.split(",")]
    for name in names:
        if not name or _NAME_PATTERN.match(name) is None:
            msg = f"Invalid name {name!r}"
            raise ScriptParseError(msg, line=lineno)
    return names


def _path(raw: str, lineno: int) -> str:
    try:
        return normalize_path(raw)
    except InvalidPathError as exc:
        raise ScriptParseError(exc.message, line=lineno) from exc


def _paths(raw: str, lineno: int) -> list[str]:
    return [_path(p.strip(), lineno) for p in raw.split(",")]


def _path_segments(expr: str, lineno: int) -> list[_PathSegment]:
    """Split ``/a(type)/b(type mixin m1,m2)`` into segments with their specs."""
    segments: list[_PathSegment] = []
    pos = 0
    while pos < len(expr):
        if expr[pos] != "/":
            msg = f"Expected '/' at position {pos} in {expr!r}"
            raise ScriptParseError(msg, line=lineno)
        pos += 1
        start = pos
        while pos < len(expr) and expr[pos] not in "/(":
            pos += 1
        name = expr[start:pos].strip()
        spec: str | None = None
        if pos < len(expr) and expr[pos] == "(":
            end = expr.find(")", pos)
            if end == -1:
                msg = f"Unclosed '(' in {expr!r}"
                raise ScriptParseError(msg, line=lineno)
            spec = expr[pos + 1 : end]
            pos = end + 1
        if not name:
            if spec is None and pos >= len(expr):
                break
            msg = f"Empty path segment in {expr!r}"
            raise ScriptParseError(msg, line=lineno)
        segments.append(_segment(name, spec, lineno))
    return segments


def _segment(name: str, spec: str | None, lineno: int) -> _PathSegment:
    if spec is None:
        return _PathSegment(name=name)
    spec = spec.strip()
    primary_type: str | None = None
    mixin_part: str | None = None
    if spec.startswith("mixin ") or spec == "mixin":
        mixin_part = spec[len("mixin") :]
    elif spec:
        primary_type, _, rest = spec.partition(" ")
        rest = rest.strip()
        if rest:
            if not rest.startswith("mixin"):
                msg = f"Expected 'mixin' after type in ({spec})"
                raise ScriptParseError(msg, line=lineno)
            mixin_part = rest[len("mixin") :]
    mixins: tuple[str, ...] | None = None
    if mixin_part is not None:
        if not mixin_part.strip():
            msg = f"Missing mixin names in ({spec})"
            raise ScriptParseError(msg, line=lineno)
        mixins = tuple(_names(mixin_part, lineno))
    return _PathSegment(name=name, primary_type=primary_type, mixins=mixins)


def parse_script(text: str) -> list[Operation]:
    """Parse repoinit *text* into an ordered list of operations.

    Raises:
        ScriptParseError: On the first malformed statement.
    """
    return _ScriptParser(text).parse()
