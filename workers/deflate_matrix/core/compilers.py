"""
Compiler discovery: which toolchains the native matrix is built with.

The default compiler name is always tried.  Versioned installs are found by
scanning fixed (directory, pattern) locations; anything that is not an
executable file is skipped without complaint, since most hosts only have a
few of them.
"""
from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List

from deflate_matrix.core.proc import probe_output
from deflate_matrix.policy.profile import MatrixProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompilerCandidate:
    """A compiler to build with; ``alive`` if it resolves to an executable."""

    path: str
    alive: bool


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def scan_location(directory: str, pattern: str) -> List[Path]:
    """Sorted matches of *pattern* under *directory*; empty if it is absent."""
    root = Path(directory)
    if not root.is_dir():
        return []
    return sorted(root.glob(pattern))


def discover_compilers(profile: MatrixProfile) -> Iterator[CompilerCandidate]:
    """Yield the default compiler, then every installed versioned compiler."""
    default = profile.default_compiler
    yield CompilerCandidate(path=default, alive=shutil.which(default) is not None)

    for directory, pattern in profile.compiler_locations:
        for path in scan_location(directory, pattern):
            if not _is_executable(path):
                logger.debug("Skipping %s: not an executable file", path)
                continue
            yield CompilerCandidate(path=str(path), alive=True)


def lacks_multilib(compiler: str, marker: str = "--disable-multilib") -> bool:
    """
    True if the toolchain was configured without multilib (no -m32 support).

    gcc prints its configure line on ``-v``.  A compiler that cannot be
    probed is not assumed to lack multilib; its build reports the problem.
    """
    out = probe_output([compiler, "-v"])
    return out is not None and marker in out


def compiler_version(compiler: str) -> str:
    """First line of ``<compiler> --version``, or "unknown"."""
    out = probe_output([compiler, "--version"])
    if not out:
        return "unknown"
    return out.splitlines()[0].strip()


def flag_variants(machine: str, profile: MatrixProfile) -> List[str]:
    """CFLAGS variants to try on a host reporting *machine* from ``uname -m``."""
    variants = list(profile.base_flag_variants)
    if machine == "x86_64":
        variants.extend(profile.x86_64_flag_variants)
    return variants
