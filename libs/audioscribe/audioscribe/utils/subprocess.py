"""Async-friendly subprocess helpers.

Commands run through `subprocess.run()` inside `asyncio.to_thread()` rather
than `asyncio.create_subprocess_exec()`, whose child watchers can hang in some
runtime environments.
"""

from __future__ import annotations

import asyncio
import subprocess
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_tail(self, limit: int = 2000) -> str:
        text = self.stderr.decode("utf-8", errors="ignore").strip()
        return text[-limit:] if len(text) > limit else text


async def run_subprocess(
    args: Sequence[str],
    *,
    timeout_s: float | None = None,
) -> RunResult:
    """Run a command and capture its output.

    Raises:
        FileNotFoundError: If the executable does not exist.
        subprocess.TimeoutExpired: If `timeout_s` elapses first.
    """

    def _run() -> subprocess.CompletedProcess[bytes]:
        return subprocess.run(
            list(args),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
            timeout=timeout_s,
        )

    cp = await asyncio.to_thread(_run)
    return RunResult(
        returncode=int(cp.returncode),
        stdout=cp.stdout or b"",
        stderr=cp.stderr or b"",
    )
