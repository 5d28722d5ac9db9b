"""
Process helpers: every external tool goes through ``run_command``.

Environment additions are applied on top of the current environment only
here, at the invocation boundary.
"""
from __future__ import annotations

import logging
import os
import shlex
import subprocess
from pathlib import Path
from typing import IO, Mapping, Optional, Sequence, Union

logger = logging.getLogger(__name__)

# Exit status reported for a command that exceeded its timeout (as timeout(1))
TIMEOUT_EXIT_CODE = 124
# Exit status reported for a command that could not be started (as sh)
NOT_FOUND_EXIT_CODE = 127


def describe_command(argv: Sequence[str], env: Optional[Mapping[str, str]] = None) -> str:
    """Render a command the way it would be typed in a shell."""
    prefix = " ".join(f"{k}={shlex.quote(v)}" for k, v in (env or {}).items())
    cmd = shlex.join(list(argv))
    return f"{prefix} {cmd}" if prefix else cmd


def run_command(
    argv: Sequence[str],
    cwd: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
    stdin: Optional[IO[bytes]] = None,
    input: Optional[bytes] = None,
    capture: bool = False,
    quiet: bool = True,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess:
    """
    Run *argv* and wait for it.

    stdout is captured with *capture*, discarded with *quiet* (the default)
    and otherwise inherited.  stderr is always passed through so build and
    test diagnostics reach the terminal.  A timeout or a
    missing executable is turned into a completed process carrying the
    shell-style exit status (124 or 127).
    """
    full_env = None
    if env:
        full_env = dict(os.environ)
        full_env.update(env)

    if capture:
        stdout = subprocess.PIPE
    elif quiet:
        stdout = subprocess.DEVNULL
    else:
        stdout = None

    logger.debug("exec: %s", describe_command(argv, env))
    try:
        return subprocess.run(
            list(argv),
            cwd=str(cwd) if cwd is not None else None,
            env=full_env,
            stdin=stdin,
            input=input,
            stdout=stdout,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.error("Command timed out after %ss: %s", timeout, describe_command(argv))
        return subprocess.CompletedProcess(list(argv), TIMEOUT_EXIT_CODE, b"", None)
    except OSError as e:
        logger.error("Cannot run %s: %s", argv[0], e)
        return subprocess.CompletedProcess(list(argv), NOT_FOUND_EXIT_CODE, b"", None)


def probe_output(argv: Sequence[str], timeout: int = 10) -> Optional[str]:
    """Run a quick query command; return combined stdout+stderr, or None if it failed."""
    try:
        r = subprocess.run(
            list(argv),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("probe failed: %s: %s", describe_command(argv), e)
        return None
    if r.returncode != 0:
        return None
    return r.stdout
