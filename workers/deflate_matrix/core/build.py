"""
Build invoker: one ``make`` run per configuration.

A BuildConfiguration is a plain record; it is turned into ``make``
variable assignments only when the command line is assembled.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from deflate_matrix.core.proc import run_command
from deflate_matrix.core.wrapper import WrapperSpec
from deflate_matrix.errors import BuildFailure
from deflate_matrix.io.schema import Phase, RunResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildConfiguration:
    """Compiler, CFLAGS and mode variables for one build."""

    compiler: Optional[str] = None          # None: the build system's default
    cflags: Tuple[str, ...] = ()
    variables: Tuple[Tuple[str, str], ...] = ()

    def make_variables(self) -> List[str]:
        """Render as ``make`` command-line assignments."""
        args = []
        if self.compiler:
            args.append(f"CC={self.compiler}")
        if self.cflags:
            args.append("CFLAGS=" + " ".join(self.cflags))
        args.extend(f"{name}={value}" for name, value in self.variables)
        return args

    def with_variables(self, extra: Iterable[Tuple[str, str]]) -> "BuildConfiguration":
        return replace(self, variables=self.variables + tuple(extra))

    def instrumented(self, wrapper: WrapperSpec) -> "BuildConfiguration":
        """Apply a wrapper's build-side instrumentation (sanitizer CC/CFLAGS)."""
        if wrapper.compiler is None and not wrapper.cflags:
            return self
        return replace(
            self,
            compiler=wrapper.compiler or self.compiler,
            cflags=self.cflags + wrapper.cflags,
        )

    def context(self) -> Dict[str, str]:
        ctx = {
            "CC": self.compiler or "(default)",
            "CFLAGS": " ".join(self.cflags),
        }
        ctx.update(dict(self.variables))
        return ctx

    def describe(self) -> str:
        return f"CC={self.compiler or '(default)'}, CFLAGS={' '.join(self.cflags)}"


class BuildInvoker:
    """Runs the library's build system in *source_dir*."""

    def __init__(
        self,
        source_dir: Union[str, Path],
        make: str = "make",
        jobs: Optional[int] = None,
        timeout: Optional[int] = None,
    ):
        self.source_dir = Path(source_dir)
        self.make = make
        self.jobs = jobs or os.cpu_count() or 1
        self.timeout = timeout

    def command(self, config: BuildConfiguration, targets: Sequence[str]) -> List[str]:
        return [self.make, *config.make_variables(), f"-j{self.jobs}", *targets]

    def build(self, config: BuildConfiguration, targets: Sequence[str]) -> RunResult:
        """Build *targets*; raise BuildFailure on any nonzero exit."""
        argv = self.command(config, targets)
        label = "make " + " ".join(targets)
        result = run_command(argv, cwd=self.source_dir, timeout=self.timeout)

        if result.returncode != 0:
            raise BuildFailure(
                f"Build failed: {label} exited with {result.returncode}",
                exit_code=result.returncode,
                context=config.context(),
            )

        return RunResult(phase=Phase.BUILD, label=label, context=config.context())
