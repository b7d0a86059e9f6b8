from pathlib import Path

from proton_handler.logging_utils import AppLogger, prune_run_logs


def test_prune_keeps_newest_run_logs(tmp_path: Path) -> None:
    for day in range(1, 6):
        (tmp_path / f"proton-handler_2026-10-0{day}_12-00-00_run{day}.log").write_text("old\n")
    (tmp_path / "other_2026-10-01_12-00-00_x.log").write_text("other\n")
    logger = AppLogger("proton-handler", log_dir=tmp_path, timestamp="2026-10-19_09-00-00", run_id="current")
    logger.log("started")

    removed = prune_run_logs(logger, keep=3)

    assert sorted(p.name for p in removed) == [
        "proton-handler_2026-10-01_12-00-00_run1.log",
        "proton-handler_2026-10-02_12-00-00_run2.log",
        "proton-handler_2026-10-03_12-00-00_run3.log",
    ]
    assert sorted(p.name for p in tmp_path.iterdir()) == [
        "other_2026-10-01_12-00-00_x.log",
        "proton-handler_2026-10-04_12-00-00_run4.log",
        "proton-handler_2026-10-05_12-00-00_run5.log",
        "proton-handler_2026-10-19_09-00-00_current.log",
    ]


def test_prune_never_removes_current_log(tmp_path: Path) -> None:
    logger = AppLogger("proton-handler", log_dir=tmp_path, run_id="only")
    logger.log("started")

    assert prune_run_logs(logger, keep=0) == []
    assert logger.path.exists()


def test_log_line_carries_context_and_entry_id(tmp_path: Path) -> None:
    logger = AppLogger("proton-handler", log_dir=tmp_path, run_id="abc")
    with logger.context("discover"):
        entry_id = logger.log("Found 2 processes", include_context=True)

    line = logger.path.read_text().strip()
    assert entry_id == "abc-0001"
    assert "[discover]" in line
    assert "[ctx:discover]" in line
    assert line.endswith("Found 2 processes")
