"""
Section inspection — read an object file's section header table.

Two interchangeable backends implement ``inspect(object_path)``:
  - ElfToolsInspector: in-process, via pyelftools.
  - ReadelfInspector: runs ``readelf -S -W`` and parses its table.

Both report flags as readelf letter strings (``W`` write, ``A`` alloc,
``X`` execute, ...), which is all the verifier looks at.
"""
from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Protocol, Tuple

from elftools.common.exceptions import ELFError
from elftools.elf.constants import SH_FLAGS
from elftools.elf.elffile import ELFFile

from rodata_guard.errors import ToolError


@dataclass(frozen=True)
class SectionRecord:
    """One section header of one object file."""

    obj: str
    name: str
    flags: str
    sh_type: str = ""
    size: int = 0

    def has_flag(self, letter: str) -> bool:
        return letter in self.flags

    @property
    def writable(self) -> bool:
        return self.has_flag("W")


class SectionInspector(Protocol):
    def inspect(self, object_path: Path) -> List[SectionRecord]:
        ...


# readelf prints flag letters in this order.
_FLAG_LETTERS: Tuple[Tuple[str, str], ...] = (
    ("W", "SHF_WRITE"),
    ("A", "SHF_ALLOC"),
    ("X", "SHF_EXECINSTR"),
    ("M", "SHF_MERGE"),
    ("S", "SHF_STRINGS"),
    ("I", "SHF_INFO_LINK"),
    ("L", "SHF_LINK_ORDER"),
    ("O", "SHF_OS_NONCONFORMING"),
    ("G", "SHF_GROUP"),
    ("T", "SHF_TLS"),
    ("C", "SHF_COMPRESSED"),
    ("E", "SHF_EXCLUDE"),
)


def flags_to_letters(sh_flags: int) -> str:
    """Render an ``sh_flags`` bitmask the way ``readelf -S`` does."""
    letters = []
    for letter, const in _FLAG_LETTERS:
        bit = getattr(SH_FLAGS, const, 0)
        if bit and sh_flags & bit:
            letters.append(letter)
    return "".join(letters)


class ElfToolsInspector:
    """Section headers via pyelftools."""

    def inspect(self, object_path: Path) -> List[SectionRecord]:
        records: List[SectionRecord] = []
        with open(object_path, "rb") as f:
            try:
                elf = ELFFile(f)
            except ELFError as e:
                raise ToolError(["pyelftools", str(object_path)], -1, str(e))
            for section in elf.iter_sections():
                records.append(SectionRecord(
                    obj=object_path.name,
                    name=section.name,
                    flags=flags_to_letters(section["sh_flags"]),
                    sh_type=str(section["sh_type"]),
                    size=section["sh_size"],
                ))
        return records


# [Nr] Name Type Address Off Size ES Flg Lk Inf Al   (readelf -S -W)
_READELF_ROW_RE = re.compile(
    r"^\s*\[\s*(?P<idx>\d+)\]\s+"
    r"(?P<name>\S+)\s+"
    r"(?P<type>\S+)\s+"
    r"(?P<addr>[0-9a-fA-F]+)\s+"
    r"(?P<off>[0-9a-fA-F]+)\s+"
    r"(?P<size>[0-9a-fA-F]+)\s+"
    r"(?P<es>[0-9a-fA-F]+)\s+"
    r"(?P<flags>[A-Za-z]*)\s*"
    r"(?P<lk>\d+)\s+(?P<inf>\d+)\s+(?P<al>\d+)\s*$"
)


def parse_readelf_sections(text: str, obj: str) -> List[SectionRecord]:
    """Parse the section table printed by ``readelf -S -W``."""
    records: List[SectionRecord] = []
    for line in text.splitlines():
        m = _READELF_ROW_RE.match(line)
        if m is None:
            continue
        records.append(SectionRecord(
            obj=obj,
            name=m.group("name"),
            flags=m.group("flags"),
            sh_type=m.group("type"),
            size=int(m.group("size"), 16),
        ))
    return records


class ReadelfInspector:
    """Section headers via an external ``readelf``."""

    def __init__(self, readelf: str = "readelf", timeout: int = 60):
        self.readelf = readelf
        self.timeout = timeout

    def inspect(self, object_path: Path) -> List[SectionRecord]:
        cmd = [self.readelf, "-S", "-W", str(object_path)]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise ToolError(cmd, -1, f"timed out after {self.timeout}s")
        except OSError as e:
            raise ToolError(cmd, -1, str(e))
        if result.returncode != 0:
            raise ToolError(cmd, result.returncode, result.stderr)
        return parse_readelf_sections(result.stdout, object_path.name)
