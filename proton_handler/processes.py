"""Process table queries for candidate Proton launcher processes.

Enumeration shells out to ``pgrep -x`` the same way the rest of the tool
talks to the system. Per-process attributes come straight from
``/proc/<pid>/environ`` and ``/proc/<pid>/cmdline``; both are NUL-separated
and are normalized to plain text here so the extractor never sees raw bytes.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .constants import LAUNCHER_IDENTIFIERS, PGREP_CMD, PROC_ROOT, READ_TIMEOUT_SECONDS

NUL = b"\0"
ENVIRON_FILE = "environ"
CMDLINE_FILE = "cmdline"


@dataclass(frozen=True)
class ProcessHandle:
    pid: int
    name: str


@dataclass(frozen=True)
class RawProcessAttributes:
    environment_text: str
    command_line_text: str


@dataclass(frozen=True)
class ReadOutcome:
    """Result of reading one candidate; ``attributes`` is ``None`` on skip."""

    handle: ProcessHandle
    attributes: Optional[RawProcessAttributes] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.attributes is not None


def has_pgrep() -> bool:
    return shutil.which(PGREP_CMD) is not None


def _pgrep_exact(name: str) -> List[int]:
    try:
        proc = subprocess.run([PGREP_CMD, "-x", name], capture_output=True, text=True, check=False)
    except OSError:
        return []
    # pgrep exits 1 when nothing matched.
    if proc.returncode != 0:
        return []
    pids = []
    for line in proc.stdout.splitlines():
        line = line.strip()
        if line.isdigit():
            pids.append(int(line))
    return pids


def find_launcher_processes(identifiers: Iterable[str] = LAUNCHER_IDENTIFIERS) -> List[ProcessHandle]:
    """Return running processes whose name equals one of ``identifiers``.

    Order follows ``identifiers`` first and PID second. A PID reported under
    two identifiers is kept once, under the first.
    """

    handles: List[ProcessHandle] = []
    seen = set()
    for name in identifiers:
        for pid in _pgrep_exact(name):
            if pid in seen:
                continue
            seen.add(pid)
            handles.append(ProcessHandle(pid=pid, name=name))
    return handles


def _decode(data: bytes) -> str:
    return os.fsdecode(data)


def normalize_environ(data: bytes) -> str:
    return "\n".join(_decode(entry) for entry in data.split(NUL) if entry)


def normalize_cmdline(data: bytes) -> str:
    return " ".join(_decode(token) for token in data.split(NUL) if token)


def read_attributes(handle: ProcessHandle, *, proc_root: Path = PROC_ROOT) -> ReadOutcome:
    """Read the environment and command line of ``handle``.

    The process may have exited or belong to another user; either way the
    candidate is reported as skipped instead of raising.
    """

    proc_dir = Path(proc_root) / str(handle.pid)
    try:
        environ = (proc_dir / ENVIRON_FILE).read_bytes()
        cmdline = (proc_dir / CMDLINE_FILE).read_bytes()
    except OSError as exc:
        return ReadOutcome(handle, error=f"{exc.__class__.__name__}: {exc.strerror or exc}")

    environment_text = normalize_environ(environ)
    command_line_text = normalize_cmdline(cmdline)
    if not environment_text or not command_line_text:
        # Kernel threads and zombies expose empty blocks.
        return ReadOutcome(handle, error="empty environment or command line")
    return ReadOutcome(handle, RawProcessAttributes(environment_text, command_line_text))


def read_all_attributes(
    handles: Sequence[ProcessHandle],
    *,
    proc_root: Path = PROC_ROOT,
    timeout: float = READ_TIMEOUT_SECONDS,
) -> List[ReadOutcome]:
    """Read every candidate concurrently, returning outcomes in input order.

    A read that does not finish within ``timeout`` seconds is reported as a
    skip for that candidate.
    """

    if not handles:
        return []

    results: List[Optional[ReadOutcome]] = [None] * len(handles)

    def _worker(index: int, handle: ProcessHandle) -> None:
        results[index] = read_attributes(handle, proc_root=proc_root)

    # Daemon threads: a read stuck in the kernel must not hold up interpreter exit.
    threads = [
        threading.Thread(target=_worker, args=(index, handle), name=f"proc-read-{handle.pid}", daemon=True)
        for index, handle in enumerate(handles)
    ]
    for thread in threads:
        thread.start()

    deadline = time.monotonic() + timeout
    outcomes = []
    for index, (handle, thread) in enumerate(zip(handles, threads)):
        thread.join(max(0.0, deadline - time.monotonic()))
        outcome = results[index]
        if thread.is_alive():
            outcome = ReadOutcome(handle, error=f"timed out after {timeout:g}s")
        elif outcome is None:
            outcome = ReadOutcome(handle, error="reader thread failed")
        outcomes.append(outcome)
    return outcomes


__all__ = [
    "ProcessHandle",
    "RawProcessAttributes",
    "ReadOutcome",
    "find_launcher_processes",
    "has_pgrep",
    "normalize_cmdline",
    "normalize_environ",
    "read_all_attributes",
    "read_attributes",
]
