"""
Run configuration, read from the environment (and an optional .env file).
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Environment inputs for a matrix run"""

    # Library under test
    LIBDEFLATE_SOURCE_DIR: str = "."
    SHARED_LIBRARY: str = "libdeflate.so"

    # Pre-supplied corpus; generated and deleted per run when unset
    TESTDATA: Optional[str] = None

    # Build system
    MAKE: str = "make"
    NPROC: Optional[int] = None
    BUILD_TIMEOUT: Optional[int] = None  # seconds

    # Test entry points (run with sh, relative to the source dir)
    NATIVE_SUITE: str = "scripts/exec_tests.sh"
    INTEROP_SUITE: str = "scripts/gzip_tests.sh"

    # Diagnostic tools
    VALGRIND: str = (
        "valgrind --quiet --error-exitcode=100 "
        "--leak-check=full --errors-for-leak-kinds=all"
    )
    SANITIZE_CC: str = "clang"
    SANITIZE_CFLAGS: str = "-fsanitize=undefined -fno-sanitize-recover=undefined,integer"

    # gzip/gunzip under test
    LOCAL_GZIP: str = "gzip"
    LOCAL_GUNZIP: str = "gunzip"
    REFERENCE_GZIP: str = "/bin/gzip"
    REFERENCE_GUNZIP: str = "/bin/gunzip"

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"
