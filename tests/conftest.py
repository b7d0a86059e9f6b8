from pathlib import Path
from typing import Dict, Iterable, Optional

import pytest

from proton_handler.logging_utils import AppLogger

PREFIX = "/home/deck/.steam/steam/steamapps/compatdata/489830"
STEAM_DIR = "/home/deck/.steam/steam"
PROTON_DIR = "/home/deck/.steam/steam/steamapps/common/Proton 9.0"
MO2_EXE = "/home/deck/Games/MO2/ModOrganizer.exe"


def write_proc_entry(
    proc_root: Path,
    pid: int,
    *,
    environ: Optional[Dict[str, str]] = None,
    cmdline: Iterable[str] = (),
) -> Path:
    """Create a fake ``/proc/<pid>`` with NUL-separated environ and cmdline."""

    proc_dir = proc_root / str(pid)
    proc_dir.mkdir(parents=True)
    env_blob = b"".join(f"{k}={v}".encode() + b"\0" for k, v in (environ or {}).items())
    cmd_blob = b"".join(token.encode() + b"\0" for token in cmdline)
    (proc_dir / "environ").write_bytes(env_blob)
    (proc_dir / "cmdline").write_bytes(cmd_blob)
    return proc_dir


def mo2_environ(**overrides: str) -> Dict[str, str]:
    env = {
        "HOME": "/home/deck",
        "STEAM_COMPAT_INSTALL_PATH": STEAM_DIR,
        "STEAM_COMPAT_DATA_PATH": PREFIX,
        "PROTONPATH": PROTON_DIR,
        "EXE": MO2_EXE,
    }
    env.update(overrides)
    return {k: v for k, v in env.items() if v is not None}


def mo2_cmdline(*extra: str) -> list:
    return [
        "/home/deck/.steam/steam/ubuntu12_32/steam-runtime/srt-bwrap",
        "--",
        f"{PROTON_DIR}/proton",
        "waitforexitandrun",
        MO2_EXE,
        *extra,
    ]


@pytest.fixture
def logger(tmp_path: Path) -> AppLogger:
    return AppLogger("test", log_dir=tmp_path / "logs", run_id="testrun")


@pytest.fixture
def proc_root(tmp_path: Path) -> Path:
    root = tmp_path / "proc"
    root.mkdir()
    return root
