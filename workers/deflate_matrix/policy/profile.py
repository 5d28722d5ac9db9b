"""
Profile: the fixed shape of the matrix.

The profile holds every policy knob (which compilers to look for, which
CFLAGS variants to try, which build targets and mode variables to pass)
so the core modules stay free of opinions.  Changing the matrix is a
profile change, not a code change.
"""
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class MatrixProfile:
    """Describes what gets built and how it is exercised."""

    # Identity
    profile_id: str

    # Compilers: the default name plus (directory, glob) install locations
    default_compiler: str = "gcc"
    compiler_locations: Tuple[Tuple[str, str], ...] = ()

    # CFLAGS variants; the extra ones are only tried on x86_64 hosts
    base_flag_variants: Tuple[str, ...] = ("",)
    x86_64_flag_variants: Tuple[str, ...] = ()
    native_flag: str = "-march=native"
    m32_flag: str = "-m32"
    strict_cflags: Tuple[str, ...] = ("-Werror",)
    multilib_disabled_marker: str = "--disable-multilib"

    # Build targets
    native_targets: Tuple[str, ...] = ("all", "test_programs")
    cli_targets: Tuple[str, ...] = ("gzip", "gunzip")

    # Build-system mode variables
    test_support_variables: Tuple[Tuple[str, str], ...] = ()
    freestanding_variables: Tuple[Tuple[str, str], ...] = ()

    # Exit code the memory checker is told to use on any defect
    memcheck_exit_code: int = 100

    # Source snapshot used for the generated corpus
    corpus_patterns: Tuple[str, ...] = ("*.c", "*.h", "*.sh")
    corpus_max_bytes: int = 1_000_000

    @classmethod
    def v0(cls) -> "MatrixProfile":
        """The libdeflate matrix: gcc/clang installs, -march=native, -m32."""
        return cls(
            profile_id="libdeflate-make-linux",
            default_compiler="gcc",
            compiler_locations=(
                ("/usr/bin", "gcc-[0-9]*"),
                ("/usr/bin", "clang-[0-9]*"),
                ("/opt", "gcc*/bin/gcc"),
                ("/opt", "clang*/bin/clang"),
            ),
            base_flag_variants=("",),
            x86_64_flag_variants=("-march=native", "-m32"),
            test_support_variables=(("TEST_SUPPORT__DO_NOT_USE", "1"),),
            freestanding_variables=(("FREESTANDING", "1"),),
        )
