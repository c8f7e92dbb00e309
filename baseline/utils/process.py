"""Async subprocess helpers.

Every external tool baseline calls (git, pip, language toolchains) goes
through run_process so that timeouts and failures look the same everywhere.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class ProcessResult:
    """Captured outcome of a finished process."""
    args: list[str]
    return_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.return_code == 0


class ProcessTimeout(Exception):
    """Raised when a process exceeds its timeout. The process is killed."""

    def __init__(self, args: list[str], timeout: float):
        self.args_list = args
        self.timeout = timeout
        super().__init__(f"{' '.join(args)} timed out after {timeout}s")


async def run_process(
    args: list[str],
    cwd: Optional[str | Path] = None,
    timeout: Optional[float] = None,
    capture: bool = True,
    env: Optional[dict[str, str]] = None,
) -> ProcessResult:
    """Run a command without a shell and wait for it.

    Args:
        args: Executable followed by its arguments
        cwd: Working directory
        timeout: Seconds before the process is killed; None or 0 waits forever
        capture: Capture stdout/stderr instead of inheriting the terminal
        env: Environment for the child (inherits when None)

    Raises:
        FileNotFoundError: The executable does not exist
        ProcessTimeout: The timeout elapsed
    """
    pipe = asyncio.subprocess.PIPE if capture else None
    process = await asyncio.create_subprocess_exec(
        *args,
        stdout=pipe,
        stderr=pipe,
        cwd=str(cwd) if cwd is not None else None,
        env=env,
    )

    try:
        if timeout:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        else:
            stdout, stderr = await process.communicate()
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise ProcessTimeout(args, timeout)

    return ProcessResult(
        args=list(args),
        return_code=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace") if stdout else "",
        stderr=stderr.decode("utf-8", errors="replace") if stderr else "",
    )
