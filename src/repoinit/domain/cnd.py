"""CND sub-parser — compact node type definitions embedded in scripts.

A ``register nodetypes`` directive carries one block delimited by
``<<===`` and ``===>>``, each on its own line::

    <<===
    <slingevent='http://sling.apache.org/jcr/event/1.0'>
    [slingevent:Job] > nt:unstructured, mix:created
      orderable
      - slingevent:topic (string) mandatory
      + * (nt:base) = nt:unstructured
    ===>>

Pure functions, no repository access. The processor extracts the block,
parses it here, and hands the result to the repository's node type
manager which owns validation against registered state.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from repoinit.domain.errors import CndSyntaxError

CND_START_MARKER = "<<==="
CND_END_MARKER = "===>>"

_NAMESPACE_PATTERN = re.compile(r"<\s*([A-Za-z_][\w.-]*)\s*=\s*(['\"])(.*?)\2\s*>")
_HEADER_PATTERN = re.compile(r"^\[\s*([^\]\s]+)\s*\](.*)$")
_SUPERTYPES_PATTERN = re.compile(r"^\s*([^\s,]+(?:\s*,\s*[^\s,]+)*)(.*)$")
_ITEM_PATTERN = re.compile(r"^([-+])\s*([^\s(=]+)\s*(?:\(\s*([^)]*?)\s*\))?\s*(?:=\s*(\S+))?(.*)$")
_BLOCK_COMMENT_PATTERN = re.compile(r"/\*.*?\*/", re.DOTALL)

_OPTION_ALIASES: dict[str, str] = {
    "mixin": "mixin",
    "mix": "mixin",
    "m": "mixin",
    "abstract": "abstract",
    "abs": "abstract",
    "a": "abstract",
    "orderable": "orderable",
    "ord": "orderable",
    "o": "orderable",
    "noquery": "noquery",
    "nq": "noquery",
    "query": "query",
    "q": "query",
    "primaryitem": "primaryitem",
    "!": "primaryitem",
}


@dataclass(frozen=True)
class NamespaceDefinition:
    """A ``<prefix='uri'>`` declaration."""

    prefix: str
    uri: str


@dataclass(frozen=True)
class PropertyDefinition:
    """A ``- name (TYPE) = default attributes`` line."""

    name: str
    required_type: str = "STRING"
    default: str | None = None
    attributes: tuple[str, ...] = ()


@dataclass(frozen=True)
class ChildNodeDefinition:
    """A ``+ name (types) = default attributes`` line."""

    name: str
    required_types: tuple[str, ...] = ()
    default_type: str | None = None
    attributes: tuple[str, ...] = ()


@dataclass(frozen=True)
class NodeTypeDefinition:
    """One ``[prefix:name] > supertypes options`` clause and its items."""

    name: str
    supertypes: tuple[str, ...] = ()
    is_mixin: bool = False
    is_abstract: bool = False
    orderable: bool = False
    queryable: bool = True
    primary_item: str | None = None
    properties: tuple[PropertyDefinition, ...] = ()
    child_nodes: tuple[ChildNodeDefinition, ...] = ()
    source: str = ""

    @property
    def prefix(self) -> str | None:
        """Namespace prefix of the type name, if any."""
        head, sep, _ = self.name.partition(":")
        return head if sep else None


@dataclass(frozen=True)
class CndDocument:
    """Parsed contents of one CND block."""

    namespaces: tuple[NamespaceDefinition, ...] = ()
    node_types: tuple[NodeTypeDefinition, ...] = ()


# ---------------------------------------------------------------------------
# Block extraction
# ---------------------------------------------------------------------------


def has_cnd_markers(text: str) -> bool:
    """Whether *text* contains a start marker on its own line."""
    return any(line.strip() == CND_START_MARKER for line in text.splitlines())


def extract_cnd_block(text: str) -> str:
    """Return the text strictly between the start and end markers.

    Raises:
        CndSyntaxError: If either marker is missing.
    """
    lines = text.replace("\r\n", "\n").split("\n")
    start_idx: int | None = None
    for i, line in enumerate(lines):
        if line.strip() == CND_START_MARKER:
            start_idx = i
            break
    if start_idx is None:
        msg = f"Missing CND start marker {CND_START_MARKER!r}"
        raise CndSyntaxError(msg)

    for j in range(start_idx + 1, len(lines)):
        if lines[j].strip() == CND_END_MARKER:
            return "\n".join(lines[start_idx + 1 : j])

    msg = f"Missing CND end marker {CND_END_MARKER!r}"
    raise CndSyntaxError(msg, line=start_idx + 1)


def unwrap_cnd(text: str) -> str:
    """Extract the block when markers are present, else return *text* as is."""
    return extract_cnd_block(text) if has_cnd_markers(text) else text


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _strip_line_comment(line: str) -> str:
    """Drop a trailing ``//`` comment that is not inside a quoted string."""
    quote: str | None = None
    for i, ch in enumerate(line):
        if quote:
            if ch == quote:
                quote = None
        elif ch in "'\"":
            quote = ch
        elif ch == "/" and line[i + 1 : i + 2] == "/":
            return line[:i]
    return line


@dataclass
class _PendingType:
    name: str
    header: list[str]
    line: int
    items: list[list[str]] = field(default_factory=list)


def parse_cnd(text: str) -> CndDocument:
    """Parse CND *text* (without markers) into namespaces and node types.

    Raises:
        CndSyntaxError: On malformed declarations, headers, or options.
    """
    cleaned = _BLOCK_COMMENT_PATTERN.sub(lambda m: "\n" * m.group(0).count("\n"), text)

    namespaces: list[NamespaceDefinition] = []
    pending: list[_PendingType] = []

    for lineno, raw in enumerate(cleaned.replace("\r\n", "\n").split("\n"), start=1):
        line = _strip_line_comment(raw).strip()
        if not line:
            continue

        if line.startswith("<"):
            matches = list(_NAMESPACE_PATTERN.finditer(line))
            leftover = _NAMESPACE_PATTERN.sub("", line).strip()
            if not matches or leftover:
                msg = f"Malformed namespace declaration: {line!r}"
                raise CndSyntaxError(msg, line=lineno)
            namespaces.extend(NamespaceDefinition(m.group(1), m.group(3)) for m in matches)
            continue

        header = _HEADER_PATTERN.match(line)
        if header is not None:
            pending.append(
                _PendingType(name=header.group(1), header=[header.group(2)], line=lineno)
            )
            continue

        if not pending:
            msg = f"Unexpected content before first node type: {line!r}"
            raise CndSyntaxError(msg, line=lineno)

        current = pending[-1]
        if line[0] in "-+":
            current.items.append([line])
        elif current.items:
            current.items[-1].append(line)
        else:
            current.header.append(line)

    node_types = tuple(_build_node_type(p) for p in pending)
    return CndDocument(namespaces=tuple(namespaces), node_types=node_types)


def _build_node_type(pending: _PendingType) -> NodeTypeDefinition:
    rest = " ".join(part.strip() for part in pending.header).strip()
    supertypes: tuple[str, ...] = ()
    if rest.startswith(">"):
        match = _SUPERTYPES_PATTERN.match(rest[1:])
        if match is None:
            msg = f"Missing supertypes after '>' for {pending.name}"
            raise CndSyntaxError(msg, line=pending.line)
        supertypes = tuple(s.strip() for s in match.group(1).split(","))
        rest = match.group(2)

    options: dict[str, bool] = {}
    primary_item: str | None = None
    tokens = rest.split()
    i = 0
    while i < len(tokens):
        token = tokens[i].rstrip("?")
        option = _OPTION_ALIASES.get(token.lower())
        if option is None:
            msg = f"Unknown node type option {tokens[i]!r} for {pending.name}"
            raise CndSyntaxError(msg, line=pending.line)
        if option == "primaryitem":
            if i + 1 >= len(tokens):
                msg = f"Missing item name after primaryitem for {pending.name}"
                raise CndSyntaxError(msg, line=pending.line)
            primary_item = tokens[i + 1]
            i += 2
            continue
        options[option] = True
        i += 1

    properties: list[PropertyDefinition] = []
    child_nodes: list[ChildNodeDefinition] = []
    for item_lines in pending.items:
        item = " ".join(item_lines)
        match = _ITEM_PATTERN.match(item)
        if match is None:
            msg = f"Malformed item definition {item!r} in {pending.name}"
            raise CndSyntaxError(msg, line=pending.line)
        marker, name, types, default, attrs = match.groups()
        attributes = tuple(attrs.split())
        if marker == "-":
            properties.append(
                PropertyDefinition(
                    name=name,
                    required_type=(types or "STRING").upper(),
                    default=default,
                    attributes=attributes,
                )
            )
        else:
            child_nodes.append(
                ChildNodeDefinition(
                    name=name,
                    required_types=tuple(t.strip() for t in (types or "").split(",") if t.strip()),
                    default_type=default,
                    attributes=attributes,
                )
            )

    source_lines = [f"[{pending.name}] {' '.join(p.strip() for p in pending.header)}".rstrip()]
    source_lines.extend("  " + " ".join(item) for item in pending.items)

    return NodeTypeDefinition(
        name=pending.name,
        supertypes=supertypes,
        is_mixin=options.get("mixin", False),
        is_abstract=options.get("abstract", False),
        orderable=options.get("orderable", False),
        queryable=not options.get("noquery", False),
        primary_item=primary_item,
        properties=tuple(properties),
        child_nodes=tuple(child_nodes),
        source="\n".join(source_lines),
    )
