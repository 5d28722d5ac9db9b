"""
Feature matrix: which CPU features to force off, one suite run per step.

libdeflate picks among implementations at runtime from the detected CPU
features.  Re-running the suite with features disabled cumulatively, newest
first, reaches every dispatched variant without trying every subset.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Dict, Iterable, List, Tuple

from deflate_matrix.policy.profile import MatrixProfile


@unique
class ArchFamily(str, Enum):
    X86 = "x86"
    ARM = "arm"
    UNKNOWN = "unknown"


# Newest capability first
FEATURE_TABLE: Dict[ArchFamily, Tuple[str, ...]] = {
    ArchFamily.X86: ("avx512bw", "avx2", "avx", "bmi2", "pclmul", "sse2"),
    ArchFamily.ARM: ("crc32", "pmull", "neon"),
    ArchFamily.UNKNOWN: (),
}

# Consumed by the library's test-support build
DISABLE_ENV_VAR = "LIBDEFLATE_DISABLE_CPU_FEATURES"

NATIVE_FLAG = MatrixProfile.v0().native_flag


@dataclass(frozen=True)
class FeatureDisableSet:
    """Tokens forced off for one suite run; empty means the baseline run."""

    tokens: Tuple[str, ...] = ()

    @property
    def env_value(self) -> str:
        return ",".join(self.tokens)

    def __bool__(self) -> bool:
        return bool(self.tokens)

    def __str__(self) -> str:
        return self.env_value or "(none)"


def classify_arch(machine: str) -> ArchFamily:
    """Map ``uname -m`` output to an architecture family."""
    if machine in ("i386", "x86_64"):
        return ArchFamily.X86
    if machine.startswith("arm") or machine.startswith("aarch"):
        return ArchFamily.ARM
    return ArchFamily.UNKNOWN


def pins_native(base_flags: Iterable[str], native_flag: str = NATIVE_FLAG) -> bool:
    """True if the flags already build for the host's full feature set."""
    return any(native_flag in flag for flag in base_flags)


def generate_feature_matrix(
    arch: ArchFamily | str,
    base_flags: Iterable[str] = (),
    native_flag: str = NATIVE_FLAG,
) -> List[FeatureDisableSet]:
    """
    Return the ordered disable sets for one build.

    The first entry is always the empty set.  Each following entry adds
    one more token, so step *i* is a subset of step *i+1*.  A build pinned
    with ``-march=native`` has nothing to dispatch and gets the baseline only.
    """
    if not isinstance(arch, ArchFamily):
        arch = classify_arch(arch)

    matrix = [FeatureDisableSet()]
    if pins_native(base_flags, native_flag):
        return matrix

    tokens: List[str] = []
    for token in FEATURE_TABLE.get(arch, ()):
        tokens.append(token)
        matrix.append(FeatureDisableSet(tuple(tokens)))
    return matrix
