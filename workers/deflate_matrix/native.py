"""
Native matrix: every compiler × CFLAGS variant × CPU-feature-disable set.

For each (compiler, variant) the library and its test programs are built
once; the test programs are then run once per step of the architecture's
cumulative feature matrix.  After the compiler matrix, the default build
is exercised again under each diagnostic wrapper (memory checker, then the
sanitizer build), walking the same feature matrix.

The first failure anywhere is raised and ends the run.
"""
from __future__ import annotations

import logging
import shlex
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from deflate_matrix.core.build import BuildConfiguration, BuildInvoker
from deflate_matrix.core.compilers import CompilerCandidate, compiler_version, lacks_multilib
from deflate_matrix.core.corpus import TestCorpus
from deflate_matrix.core.features import generate_feature_matrix
from deflate_matrix.core.suite import SuiteInvoker
from deflate_matrix.core.wrapper import BARE, WrapperMode, WrapperSelector, WrapperSpec
from deflate_matrix.io.schema import Phase, RunResult
from deflate_matrix.policy.profile import MatrixProfile

logger = logging.getLogger(__name__)

DEFAULT_WRAPPER_MODES = (WrapperMode.MEMORY_CHECK, WrapperMode.SANITIZED)

_PASS_TITLES = {
    WrapperMode.MEMORY_CHECK: "Running tests with Valgrind",
    WrapperMode.SANITIZED: "Running tests with undefined behavior sanitizer",
}


class NativeMatrixRunner:
    """Builds and runs the native test programs across the matrix."""

    def __init__(
        self,
        builder: BuildInvoker,
        suite: SuiteInvoker,
        selector: WrapperSelector,
        profile: MatrixProfile,
        machine: str,
        variables: Iterable[Tuple[str, str]] = (),
        phase: Phase = Phase.NATIVE,
        multilib_probe: Optional[Callable[[str], bool]] = None,
    ):
        self.builder = builder
        self.suite = suite
        self.selector = selector
        self.profile = profile
        self.machine = machine
        self.variables = tuple(profile.test_support_variables) + tuple(variables)
        self.phase = phase
        if multilib_probe is None:
            def multilib_probe(compiler: str) -> bool:
                return lacks_multilib(compiler, profile.multilib_disabled_marker)
        self.multilib_probe = multilib_probe

    @property
    def base_config(self) -> BuildConfiguration:
        """Default compiler, no CFLAGS, this runner's mode variables."""
        return BuildConfiguration(variables=self.variables)

    # -----------------------------------------------------------------
    # One build, every feature-disable step
    # -----------------------------------------------------------------

    def build_and_test(
        self,
        corpus: TestCorpus,
        config: BuildConfiguration,
        wrapper: WrapperSpec = BARE,
        prebuilt: bool = False,
    ) -> List[RunResult]:
        """Build *config* under *wrapper*, then run the suite once per disable set.

        With *prebuilt* the caller has already built exactly this
        configuration and only the suite runs.
        """
        config = config.instrumented(wrapper)
        results: List[RunResult] = []
        if not prebuilt:
            results.append(self.builder.build(config, self.profile.native_targets))

        matrix = generate_feature_matrix(self.machine, config.cflags, self.profile.native_flag)
        for features in matrix:
            if features:
                logger.info("Retrying with CPU features disabled: %s", features.env_value)
            results.append(
                self.suite.run_native(
                    corpus,
                    features,
                    wrapper,
                    phase=self.phase,
                    context=config.context(),
                )
            )
        return results

    # -----------------------------------------------------------------
    # Matrix passes
    # -----------------------------------------------------------------

    def _skip_variant(self, compiler: CompilerCandidate, cflags: str) -> bool:
        if cflags != self.profile.m32_flag:
            return False
        if self.multilib_probe(compiler.path):
            logger.debug("Skipping %s with %s: toolchain built without multilib",
                         cflags, compiler.path)
            return True
        return False

    def run_compiler_matrix(
        self,
        corpus: TestCorpus,
        compilers: Iterable[CompilerCandidate],
        flag_variants: Sequence[str],
    ) -> List[RunResult]:
        results: List[RunResult] = []
        for compiler in compilers:
            if not compiler.alive:
                logger.debug("Compiler %s not found on PATH; make will report it", compiler.path)
            logger.debug("Compiler %s: %s", compiler.path, compiler_version(compiler.path))
            for cflags in flag_variants:
                if self._skip_variant(compiler, cflags):
                    continue
                config = BuildConfiguration(
                    compiler=compiler.path,
                    cflags=tuple(shlex.split(cflags)) + self.profile.strict_cflags,
                    variables=self.variables,
                )
                logger.info("Running tests with CC=%s, CFLAGS=%s", compiler.path, cflags)
                results.extend(self.build_and_test(corpus, config, BARE))
        return results

    def run_wrapped(
        self,
        corpus: TestCorpus,
        config: BuildConfiguration,
        wrapper_modes: Sequence[WrapperMode] = DEFAULT_WRAPPER_MODES,
    ) -> List[RunResult]:
        results: List[RunResult] = []
        for mode in wrapper_modes:
            wrapper = self.selector.select(mode)
            logger.info(_PASS_TITLES.get(wrapper.mode, "Running tests"))
            results.extend(self.build_and_test(corpus, config, wrapper))
        return results

    def run(
        self,
        corpus: TestCorpus,
        compilers: Iterable[CompilerCandidate],
        flag_variants: Sequence[str],
        wrapper_modes: Sequence[WrapperMode] = DEFAULT_WRAPPER_MODES,
    ) -> List[RunResult]:
        """Full native matrix, then one pass per wrapper mode."""
        results = self.run_compiler_matrix(corpus, compilers, flag_variants)
        results.extend(self.run_wrapped(corpus, self.base_config, wrapper_modes))
        return results
