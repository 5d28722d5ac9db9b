"""
Wrapper selection: how failures are detected in one sub-run.

Either the test programs run under a memory checker (runtime
instrumentation) or they are built with the undefined-behavior sanitizer
(compile-time instrumentation).  Never both in the same sub-run.
"""
from __future__ import annotations

import shlex
from dataclasses import dataclass
from enum import Enum, unique
from typing import List, Optional, Sequence, Tuple

from deflate_matrix.config import Settings


@unique
class WrapperMode(str, Enum):
    BARE = "bare"
    MEMORY_CHECK = "memory-check"
    SANITIZED = "sanitized"


@dataclass(frozen=True)
class WrapperSpec:
    """Command prefix for test programs, plus any build-side instrumentation."""

    mode: WrapperMode
    prefix: Tuple[str, ...] = ()
    compiler: Optional[str] = None
    cflags: Tuple[str, ...] = ()

    @property
    def env_value(self) -> str:
        """The prefix as the test scripts expect it in ``$WRAPPER``."""
        return " ".join(self.prefix)

    def wrap(self, argv: Sequence[str]) -> List[str]:
        return list(self.prefix) + list(argv)

    def wrap_string(self, program: str) -> str:
        """``GZIP``/``GUNZIP`` style: prefix and program in one word-split string."""
        return " ".join(self.wrap([program]))


BARE = WrapperSpec(WrapperMode.BARE)


class WrapperSelector:
    """Resolves a WrapperMode to a WrapperSpec from the run settings."""

    def __init__(self, settings: Settings):
        self.memcheck_prefix = tuple(shlex.split(settings.VALGRIND))
        self.sanitize_cc = settings.SANITIZE_CC
        self.sanitize_cflags = tuple(shlex.split(settings.SANITIZE_CFLAGS))

    def select(self, mode: WrapperMode | str) -> WrapperSpec:
        mode = WrapperMode(mode)
        if mode == WrapperMode.MEMORY_CHECK:
            return WrapperSpec(mode, prefix=self.memcheck_prefix)
        if mode == WrapperMode.SANITIZED:
            return WrapperSpec(
                mode,
                compiler=self.sanitize_cc,
                cflags=self.sanitize_cflags,
            )
        return BARE
