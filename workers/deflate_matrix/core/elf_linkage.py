"""
ELF linkage reader: what a built artifact needs from the outside world.

Responsibilities:
  - Collect undefined, non-weak symbols from .symtab and .dynsym
    (the entries ``nm`` lists as ``U``).
  - Collect DT_NEEDED entries from the dynamic section (what ``ldd``
    resolves; none means "statically linked").
  - Return an ArtifactLinkage with both lists, sorted and de-duplicated.

Read-only; the artifact is never modified.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

from elftools.elf.dynamic import DynamicSection
from elftools.elf.elffile import ELFFile
from elftools.elf.sections import SymbolTableSection


@dataclass(frozen=True)
class ArtifactLinkage:
    """External references of one ELF artifact."""

    path: str
    machine: str                                   # e.g. "EM_X86_64"
    undefined_symbols: List[str] = field(default_factory=list)
    needed_libraries: List[str] = field(default_factory=list)

    @property
    def is_self_contained(self) -> bool:
        return not self.undefined_symbols and not self.needed_libraries


def _undefined_symbols(elffile: ELFFile) -> List[str]:
    names = set()
    for section in elffile.iter_sections():
        if not isinstance(section, SymbolTableSection):
            continue
        for sym in section.iter_symbols():
            if not sym.name:
                continue
            if sym["st_shndx"] != "SHN_UNDEF":
                continue
            # Weak references resolve to NULL when absent; nm shows them as 'w'
            if sym["st_info"]["bind"] == "STB_WEAK":
                continue
            names.add(sym.name)
    return sorted(names)


def _needed_libraries(elffile: ELFFile) -> List[str]:
    needed: List[str] = []
    for section in elffile.iter_sections():
        if not isinstance(section, DynamicSection):
            continue
        for tag in section.iter_tags("DT_NEEDED"):
            if tag.needed not in needed:
                needed.append(tag.needed)
    return needed


def read_linkage(path: Union[str, Path]) -> ArtifactLinkage:
    """
    Open *path* as an ELF file and list its external references.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ELFError
        If the file is not a valid ELF binary.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Artifact not found: {path}")

    with open(p, "rb") as f:
        elffile = ELFFile(f)
        return ArtifactLinkage(
            path=str(p),
            machine=elffile.header.e_machine,
            undefined_symbols=_undefined_symbols(elffile),
            needed_libraries=_needed_libraries(elffile),
        )
