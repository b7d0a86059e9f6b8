"""Error reporting for a handler that usually runs without a terminal.

The handler is normally started by ``xdg-open`` from a browser, so a
PySide6 message box is the only way a failure becomes visible. Without a
display, or when PySide6 cannot be imported, messages go to stderr.
"""

from __future__ import annotations

import os
import sys
from typing import Mapping, Optional

from .constants import APP_NAME, FORCE_CONSOLE_DIALOGS_ENV
from .logging_utils import LOG_LEVEL_ERROR, AppLogger

DISPLAY_ENV_KEYS = ("DISPLAY", "WAYLAND_DISPLAY")
_QT_APP: Optional["QtWidgets.QApplication"] = None
_QT_IMPORT_ERROR: Optional[BaseException] = None


def _truthy(value: Optional[str]) -> bool:
    return str(value or "").strip().lower() not in ("", "0", "false", "no", "off")


def use_console_dialogs(environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    if _truthy(env.get(FORCE_CONSOLE_DIALOGS_ENV)):
        return True
    return not any(env.get(key) for key in DISPLAY_ENV_KEYS)


def ensure_qt_available() -> None:
    global _QT_IMPORT_ERROR

    if _QT_IMPORT_ERROR is not None:
        raise RuntimeError(f"PySide6 is required for {APP_NAME} dialogs") from _QT_IMPORT_ERROR

    try:
        from PySide6 import QtWidgets  # noqa: F401
    except Exception as exc:  # pragma: no cover - import guard
        _QT_IMPORT_ERROR = exc
        raise RuntimeError(f"PySide6 is required for {APP_NAME} dialogs") from exc


def ensure_qt_app() -> "QtWidgets.QApplication":
    global _QT_APP

    ensure_qt_available()
    from PySide6 import QtWidgets

    if _QT_APP is not None:
        return _QT_APP

    try:
        app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    except Exception as exc:  # pragma: no cover - runtime guard
        raise RuntimeError("PySide6 application could not be created") from exc

    _QT_APP = app
    return app


def _qt_error_box(title: str, message: str) -> None:  # pragma: no cover - needs a display
    ensure_qt_app()
    from PySide6 import QtWidgets

    box = QtWidgets.QMessageBox(QtWidgets.QMessageBox.Critical, title, message)
    box.setStandardButtons(QtWidgets.QMessageBox.Ok)
    box.exec()


def error_dialog(message: str, *, title: str = "Error", logger: Optional[AppLogger] = None) -> None:
    """Show ``message`` as an error, falling back to stderr."""

    if logger:
        backend = "console" if use_console_dialogs() else "qt"
        logger.log_dialog(title, message, level=LOG_LEVEL_ERROR, backend=backend)

    if not use_console_dialogs():
        try:
            _qt_error_box(title, message)
            return
        except RuntimeError as exc:
            if logger:
                logger.log(f"Qt dialog unavailable: {exc}", level=LOG_LEVEL_ERROR, location="dialog-qt")

    sys.stderr.write(f"ERROR: {title}: {message}\n")
    sys.stderr.flush()


__all__ = ["ensure_qt_app", "ensure_qt_available", "error_dialog", "use_console_dialogs"]
