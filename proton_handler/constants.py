from __future__ import annotations

import os
from pathlib import Path


APP_NAME = "proton-handler"

HOME_DIR = Path.home()
LOCAL_CONFIG_DIR = HOME_DIR / ".config"
LOCAL_SHARE_DIR = HOME_DIR / ".local" / "share"

CONFIG_DIR = LOCAL_CONFIG_DIR / APP_NAME
CONFIG_FILE = CONFIG_DIR / "config.ini"
DATA_DIR = LOCAL_SHARE_DIR / APP_NAME
LOG_ROOT = Path(os.environ.get("PROTON_HANDLER_LOG_DIR") or DATA_DIR / "logs")

CONFIG_FILE_ENV = "PROTON_HANDLER_CONFIG"
FORCE_CONSOLE_DIALOGS_ENV = "PROTON_HANDLER_FORCE_CONSOLE_DIALOGS"

PROC_ROOT = Path("/proc")
PGREP_CMD = "pgrep"
READ_TIMEOUT_SECONDS = 2.0
# Every clicked link is a separate run with its own log file.
MAX_RUN_LOGS = 20

# Official Valve Proton runs under pressure-vessel's srt-bwrap; proton-tkg and
# friends sit below Steam's reaper.
BWRAP_IDENTIFIER = "srt-bwrap"
REAPER_IDENTIFIER = "reaper"
LAUNCHER_IDENTIFIERS = (BWRAP_IDENTIFIER, REAPER_IDENTIFIER)

PROTON_BINARY = "proton"
PROTON_VERB = "run"

ENV_PROTON_PATH = "PROTONPATH"
ENV_APP_EXE = "EXE"
ENV_COMPAT_INSTALL_PATH = "STEAM_COMPAT_INSTALL_PATH"
ENV_COMPAT_CLIENT_PATH = "STEAM_COMPAT_CLIENT_INSTALL_PATH"
ENV_COMPAT_DATA_PATH = "STEAM_COMPAT_DATA_PATH"
ENV_DOTNET_ROOT = "DOTNET_ROOT"

# Keys of a profile section in config.ini.
APP_KEY = "APP"
ARGS_KEY = "ARGS"
PROTON_KEY = "PROTON"
COMPAT_CLIENT_PATH_KEY = ENV_COMPAT_CLIENT_PATH
COMPAT_DATA_PATH_KEY = ENV_COMPAT_DATA_PATH
DOTNET_ROOT_KEY = ENV_DOTNET_ROOT

ENCODING_UTF8 = "utf-8"
ENCODING_ERRORS = "surrogateescape"

EXIT_FAILURE = 1
EXIT_USAGE = 0
