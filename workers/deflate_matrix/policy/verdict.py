"""
Verdict: ACCEPT / REJECT for a freestanding artifact, with reason enums.

Any external reference at all rejects the artifact.  Policy rules never
open files; they judge an ArtifactLinkage produced by core/.
"""
from enum import Enum, unique
from typing import List, Tuple

from deflate_matrix.core.elf_linkage import ArtifactLinkage


@unique
class Verdict(str, Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"


@unique
class LinkageRejectReason(str, Enum):
    EXTERNAL_FUNCTIONS = "EXTERNAL_FUNCTIONS"
    EXTERNAL_LIBRARIES = "EXTERNAL_LIBRARIES"


def gate_freestanding(linkage: ArtifactLinkage) -> Tuple[Verdict, List[str]]:
    """
    Evaluate an artifact that must not depend on the host runtime.

    Returns (Verdict, list_of_reason_strings).
    """
    reasons: List[str] = []

    if linkage.undefined_symbols:
        reasons.append(LinkageRejectReason.EXTERNAL_FUNCTIONS.value)

    if linkage.needed_libraries:
        reasons.append(LinkageRejectReason.EXTERNAL_LIBRARIES.value)

    if reasons:
        return Verdict.REJECT, reasons
    return Verdict.ACCEPT, []


def offenders(linkage: ArtifactLinkage) -> List[str]:
    """Human-readable list of every external reference."""
    return (
        [f"symbol {name}" for name in linkage.undefined_symbols]
        + [f"library {name}" for name in linkage.needed_libraries]
    )
