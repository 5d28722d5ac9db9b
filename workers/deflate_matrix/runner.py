"""
Matrix runner: top-level orchestration of native, freestanding and interop phases.

``main`` takes no arguments.  Everything it needs comes from the
environment (see ``config.Settings``).  Phases run strictly in order and
the first failure ends the run with that failure's exit code.
"""
from __future__ import annotations

import argparse
import logging
import platform
import signal
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from deflate_matrix import PACKAGE_NAME, __version__
from deflate_matrix.config import Settings
from deflate_matrix.core.build import BuildInvoker
from deflate_matrix.core.compilers import discover_compilers, flag_variants
from deflate_matrix.core.corpus import CorpusProvisioner, TestCorpus
from deflate_matrix.core.suite import BinaryPair, SuiteInvoker
from deflate_matrix.core.wrapper import WrapperSelector
from deflate_matrix.errors import MatrixError, UsageError
from deflate_matrix.freestanding import FreestandingValidator
from deflate_matrix.interop import InteropRunner
from deflate_matrix.io.schema import Phase, RunResult
from deflate_matrix.native import NativeMatrixRunner
from deflate_matrix.policy.profile import MatrixProfile

logger = logging.getLogger(__name__)

PhaseFn = Callable[[TestCorpus], List[RunResult]]


# ── Phase assembly ───────────────────────────────────────────────────────────

def build_phases(
    settings: Settings,
    profile: Optional[MatrixProfile] = None,
    machine: Optional[str] = None,
) -> List[Tuple[Phase, PhaseFn]]:
    """Wire the collaborators for a run and return the phases in order."""
    if profile is None:
        profile = MatrixProfile.v0()
    if machine is None:
        machine = platform.machine()

    source_dir = Path(settings.LIBDEFLATE_SOURCE_DIR)
    builder = BuildInvoker(
        source_dir,
        make=settings.MAKE,
        jobs=settings.NPROC,
        timeout=settings.BUILD_TIMEOUT,
    )
    suite = SuiteInvoker(
        source_dir,
        native_suite=settings.NATIVE_SUITE,
        interop_suite=settings.INTEROP_SUITE,
        memcheck_exit_code=profile.memcheck_exit_code,
    )
    selector = WrapperSelector(settings)

    native = NativeMatrixRunner(builder, suite, selector, profile, machine)
    freestanding = FreestandingValidator(
        NativeMatrixRunner(
            builder, suite, selector, profile, machine,
            variables=profile.freestanding_variables,
            phase=Phase.FREESTANDING,
        ),
        artifact=source_dir / settings.SHARED_LIBRARY,
    )
    interop = InteropRunner.for_source_dir(
        source_dir, builder, suite, selector, profile,
        local_gzip=settings.LOCAL_GZIP,
        local_gunzip=settings.LOCAL_GUNZIP,
        reference=BinaryPair(settings.REFERENCE_GZIP, settings.REFERENCE_GUNZIP),
    )

    def run_native(corpus: TestCorpus) -> List[RunResult]:
        return native.run(
            corpus,
            discover_compilers(profile),
            flag_variants(machine, profile),
        )

    return [
        (Phase.NATIVE, run_native),
        (Phase.FREESTANDING, freestanding.validate),
        (Phase.INTEROP, interop.run),
    ]


def run_pipeline(
    corpus: TestCorpus,
    phases: Sequence[Tuple[Phase, PhaseFn]],
) -> List[RunResult]:
    """Run *phases* in order; an exception from any phase stops the rest."""
    results: List[RunResult] = []
    for phase, fn in phases:
        logger.debug("Phase %s starting", phase.value)
        phase_results = fn(corpus)
        logger.debug("Phase %s passed (%d steps)", phase.value, len(phase_results))
        results.extend(phase_results)
    return results


# ── Signals ──────────────────────────────────────────────────────────────────

def _exit_on_signal(signum, frame):
    raise SystemExit(128 + signum)


def install_signal_handlers() -> None:
    """Turn SIGTERM/SIGHUP into SystemExit so cleanup runs on the way out."""
    for name in ("SIGTERM", "SIGHUP"):
        signum = getattr(signal, name, None)
        if signum is not None:
            signal.signal(signum, _exit_on_signal)


# ── CLI ──────────────────────────────────────────────────────────────────────

class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


def make_parser() -> argparse.ArgumentParser:
    return _ArgumentParser(
        prog="deflate-matrix",
        description="Build and test libdeflate across compilers, CPU features "
                    "and diagnostic tools.  Takes no arguments; configure via "
                    "the environment.",
        add_help=False,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point; returns the process exit code."""
    parser = make_parser()
    try:
        parser.parse_args(sys.argv[1:] if argv is None else list(argv))
    except UsageError as e:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {e.message}", file=sys.stderr)
        return e.exit_code

    try:
        settings = Settings()
    except ValidationError as e:
        print(f"{parser.prog}: invalid configuration:\n{e}", file=sys.stderr)
        return UsageError.exit_code

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="[%(asctime)s] %(message)s",
        stream=sys.stdout,
    )
    install_signal_handlers()

    profile = MatrixProfile.v0()
    logger.debug("%s %s, profile %s", PACKAGE_NAME, __version__, profile.profile_id)
    logger.info("Starting libdeflate tests")
    try:
        with CorpusProvisioner(
            settings.LIBDEFLATE_SOURCE_DIR,
            supplied=settings.TESTDATA,
            patterns=profile.corpus_patterns,
            limit=profile.corpus_max_bytes,
        ) as corpus:
            run_pipeline(corpus, build_phases(settings, profile))
    except MatrixError as e:
        logger.error("FAILED: %s", e)
        return e.exit_code
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 130

    logger.info("All tests passed!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
