"""Relaunch Proton into the prefix of a running (or previously seen) game.

Usage::

    proton-handler <app exe name> <argument> [argument ...]

For example, registering ``proton-handler MO2.exe %u`` as the ``nxm://``
handler forwards download links to the Mod Organizer 2 instance that runs
inside a Steam game's Proton prefix.
"""

from __future__ import annotations

import os
from typing import List, Optional

from .constants import EXIT_FAILURE, EXIT_USAGE, PGREP_CMD
from .dialogs import error_dialog
from .launcher import LaunchCoordinator, ProtonHandlerError
from .logging_utils import LOG_LEVEL_ERROR, LOG_LEVEL_WARNING, get_app_logger
from .processes import has_pgrep
from .profile_store import ProfileStore, default_config_path

MAIN_CONTEXT = "main"
ERROR_TITLE = "Proton handler error"
USAGE = (
    "Must pass an app exe name (eg, MO2.exe) and any arguments to pass to the app (eg, a URL)."
)


def main(argv: List[str], *, coordinator: Optional[LaunchCoordinator] = None) -> int:
    logger = get_app_logger()
    with logger.context(MAIN_CONTEXT):
        user_args = argv[1:]
        if len(user_args) < 2:
            logger.log(
                f"Not enough arguments. Received: {len(user_args)}. Expected: At least 2. {USAGE}",
                level=LOG_LEVEL_WARNING,
                include_context=True,
                mirror_console=True,
                stream="stderr",
            )
            return EXIT_USAGE

        if coordinator is None:
            if not has_pgrep():
                message = f"Cannot find executable '{PGREP_CMD}'."
                logger.log(message, level=LOG_LEVEL_ERROR, include_context=True, mirror_console=True, stream="stderr")
                error_dialog(message, title=ERROR_TITLE, logger=logger)
                return EXIT_FAILURE
            environ = dict(os.environ)
            store = ProfileStore(default_config_path(environ), logger=logger)
            coordinator = LaunchCoordinator(store, logger=logger, environ=environ)

        target_exe_name, passthrough_args = user_args[0], user_args[1:]
        try:
            return coordinator.run(target_exe_name, passthrough_args)
        except ProtonHandlerError as exc:
            logger.log(str(exc), level=LOG_LEVEL_ERROR, include_context=True, mirror_console=True, stream="stderr")
            error_dialog(str(exc), title=ERROR_TITLE, logger=logger)
            return EXIT_FAILURE
