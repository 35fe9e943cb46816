"""
Declaration matcher — recognise promotable static array declarations.

Responsibilities:
  - Match ``static <Type> <Name>[<Size>]`` at the start of a line.
  - Capture type, name and the (possibly empty) size literal.
  - Refuse lines that already mention ``const``.
  - Recognise already-promoted ``static const ...[...]`` declarations
    for the annotation step.

This module intentionally does NOT parse C.  Multi-word types
(``unsigned int``), pointer arrays and declarations split across lines
are out of reach by construction.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

_IDENT = r"[A-Za-z_][A-Za-z0-9_]*"

# static <Type> <Name>[<digits>?] plus any further dimensions
_STATIC_ARRAY_RE = re.compile(
    rf"^[ \t]*static[ \t]+(?P<type>{_IDENT})[ \t]+"
    rf"(?P<name>{_IDENT})\[(?P<size>[0-9]*)\]"
    r"(?P<dims>(?:[ \t]*\[[^\]]*\])*)"
)

# static const <anything but ; or => [<anything but ]>]
_STATIC_CONST_ARRAY_RE = re.compile(
    r"^[ \t]*static[ \t]+const\b[^;=]*\[[^\]]*\]"
)

_CONST_RE = re.compile(r"\bconst\b")


@dataclass(frozen=True)
class ArrayDeclaration:
    """A static array declaration eligible for const-promotion."""

    type_name: str
    name: str
    size: Optional[str]  # None for flexible arrays (``name[]``)
    type_start: int  # offset of the element type in the line
    end: int  # offset just past the last closing bracket
    dims: str = ""  # trailing dimensions, e.g. "[3]" for ``name[2][3]``

    @property
    def is_flexible(self) -> bool:
        return self.size is None

    @property
    def bracket(self) -> str:
        return f"[{self.size or ''}]{self.dims}"


def match_declaration(line: str) -> Optional[ArrayDeclaration]:
    """Return the promotable declaration on *line*, or None."""
    if _CONST_RE.search(line):
        return None
    m = _STATIC_ARRAY_RE.match(line)
    if m is None:
        return None
    size = m.group("size")
    return ArrayDeclaration(
        type_name=m.group("type"),
        name=m.group("name"),
        size=size if size else None,
        type_start=m.start("type"),
        end=m.end(),
        dims=m.group("dims"),
    )


def promoted_declaration_end(line: str) -> Optional[int]:
    """
    Offset just past the bracket of a ``static const`` array declaration
    on *line*, or None if the line is not one.
    """
    m = _STATIC_CONST_ARRAY_RE.match(line)
    return m.end() if m else None


def contains_promotable(lines: Iterable[str]) -> bool:
    """True if any line holds an unqualified static array declaration."""
    return any(match_declaration(line) is not None for line in lines)
