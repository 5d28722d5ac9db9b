"""
Test entry points: the library's own test scripts and the gzip round trip.

The native suite gets the wrapper, corpus and disabled-feature list through
its environment; the interop suite gets GZIP/GUNZIP with the wrapper
already prepended.  Any nonzero exit is raised immediately.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from deflate_matrix.core.corpus import TestCorpus
from deflate_matrix.core.features import DISABLE_ENV_VAR, FeatureDisableSet
from deflate_matrix.core.proc import run_command
from deflate_matrix.core.wrapper import WrapperMode, WrapperSpec
from deflate_matrix.errors import InteropFailure, MemoryCheckFailure, TestFailure
from deflate_matrix.io.schema import Phase, RunResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BinaryPair:
    """Compressor and decompressor for one interop cell."""

    compressor: str
    decompressor: str


class SuiteInvoker:
    """Runs test programs from *source_dir* and checks their exit status."""

    def __init__(
        self,
        source_dir: Union[str, Path],
        native_suite: str = "scripts/exec_tests.sh",
        interop_suite: str = "scripts/gzip_tests.sh",
        memcheck_exit_code: int = 100,
        shell: str = "sh",
        timeout: Optional[int] = None,
    ):
        self.source_dir = Path(source_dir)
        self.native_suite = native_suite
        self.interop_suite = interop_suite
        self.memcheck_exit_code = memcheck_exit_code
        self.shell = shell
        self.timeout = timeout

    # -----------------------------------------------------------------
    # Exit status
    # -----------------------------------------------------------------

    def check_exit(
        self,
        returncode: int,
        wrapper: WrapperSpec,
        what: str,
        context: Dict[str, str],
    ) -> None:
        if returncode == 0:
            return
        if wrapper.mode == WrapperMode.MEMORY_CHECK and returncode == self.memcheck_exit_code:
            raise MemoryCheckFailure(
                f"{what}: memory checker reported errors",
                exit_code=returncode,
                context=context,
            )
        raise TestFailure(
            f"{what} exited with {returncode}",
            exit_code=returncode,
            context=context,
        )

    # -----------------------------------------------------------------
    # Entry points
    # -----------------------------------------------------------------

    def run_native(
        self,
        corpus: TestCorpus,
        features: FeatureDisableSet,
        wrapper: WrapperSpec,
        phase: Phase = Phase.NATIVE,
        context: Optional[Dict[str, str]] = None,
    ) -> RunResult:
        """Run the test programs once with *features* forced off."""
        ctx = dict(context or {})
        ctx.update({"wrapper": wrapper.mode.value, "disabled": str(features)})
        env = {
            "WRAPPER": wrapper.env_value,
            "TESTDATA": str(corpus.path),
            DISABLE_ENV_VAR: features.env_value,
        }
        result = run_command(
            [self.shell, self.native_suite],
            cwd=self.source_dir,
            env=env,
            timeout=self.timeout,
        )
        self.check_exit(result.returncode, wrapper, "Test programs", ctx)
        return RunResult(
            phase=phase,
            label=self.native_suite,
            wrapper=wrapper.mode.value,
            features=features.env_value,
            context=ctx,
        )

    def run_interop(
        self,
        corpus: TestCorpus,
        pair: BinaryPair,
        wrapper: WrapperSpec,
        context: Optional[Dict[str, str]] = None,
    ) -> RunResult:
        """Run the gzip program test script against *pair*."""
        ctx = dict(context or {})
        ctx.update({"GZIP": pair.compressor, "GUNZIP": pair.decompressor,
                    "wrapper": wrapper.mode.value})
        env = {
            "GZIP": wrapper.wrap_string(pair.compressor),
            "GUNZIP": wrapper.wrap_string(pair.decompressor),
            "TESTDATA": str(corpus.path),
        }
        result = run_command(
            [self.shell, self.interop_suite],
            cwd=self.source_dir,
            env=env,
            quiet=False,
            timeout=self.timeout,
        )
        self.check_exit(result.returncode, wrapper, "gzip program tests", ctx)
        return RunResult(
            phase=Phase.INTEROP,
            label=self.interop_suite,
            wrapper=wrapper.mode.value,
            context=ctx,
        )

    def round_trip(
        self,
        corpus: TestCorpus,
        pair: BinaryPair,
        wrapper: WrapperSpec,
        context: Optional[Dict[str, str]] = None,
    ) -> RunResult:
        """Compress the corpus with one program, decompress with the other, compare."""
        ctx = dict(context or {})
        ctx.update({"GZIP": pair.compressor, "GUNZIP": pair.decompressor,
                    "wrapper": wrapper.mode.value})
        original = corpus.path.read_bytes()

        with open(corpus.path, "rb") as f:
            compressed = run_command(
                wrapper.wrap([pair.compressor, "-c"]),
                cwd=self.source_dir,
                stdin=f,
                capture=True,
                timeout=self.timeout,
            )
        self.check_exit(compressed.returncode, wrapper, f"{pair.compressor} -c", ctx)

        restored = run_command(
            wrapper.wrap([pair.decompressor, "-c"]),
            cwd=self.source_dir,
            input=compressed.stdout,
            capture=True,
            timeout=self.timeout,
        )
        self.check_exit(restored.returncode, wrapper, f"{pair.decompressor} -c", ctx)

        if restored.stdout != original:
            raise InteropFailure(
                f"Round trip mismatch: got {len(restored.stdout)} bytes back, "
                f"expected {len(original)} identical bytes",
                context=ctx,
            )
        return RunResult(
            phase=Phase.INTEROP,
            label=f"{pair.compressor} | {pair.decompressor}",
            wrapper=wrapper.mode.value,
            context=ctx,
        )
