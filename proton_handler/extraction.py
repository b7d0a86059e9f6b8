"""Recover launch fields from a candidate's environment and command line.

Environment text is scanned line by line, command-line text as one blob.
Every pattern has a single capture group and the first match wins; a
pattern that never matches yields an empty string.
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

from .constants import (
    ENV_APP_EXE,
    ENV_COMPAT_DATA_PATH,
    ENV_COMPAT_INSTALL_PATH,
    ENV_DOTNET_ROOT,
    ENV_PROTON_PATH,
    PROTON_BINARY,
)
from .processes import RawProcessAttributes
from .profile_store import AppLaunchProfile


def _env_pattern(key: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(key)}=(.*)$")


ENVIRON_PROTON_PATH_RE = _env_pattern(ENV_PROTON_PATH)
ENVIRON_APP_EXE_RE = _env_pattern(ENV_APP_EXE)
COMPAT_INSTALL_PATH_RE = _env_pattern(ENV_COMPAT_INSTALL_PATH)
COMPAT_DATA_PATH_RE = _env_pattern(ENV_COMPAT_DATA_PATH)
DOTNET_ROOT_RE = _env_pattern(ENV_DOTNET_ROOT)

# The leading ``.*`` anchors on the last ``-- `` separator that is followed by
# a proton path, which skips pressure-vessel's own ``-- entry-point`` section.
CMDLINE_PROTON_PATH_RE = re.compile(r".*-- (?:.*?container-runtime )?(/.*?/proton)(?: |$)")
CMDLINE_APP_EXE_RE = re.compile(r"proton (?:waitforexitand)?run (.*?\.exe)(?= |$)")


def first_capture(pattern: re.Pattern[str], text: str) -> str:
    """Return group 1 of the first line of ``text`` matching ``pattern``."""

    for line in text.split("\n"):
        match = pattern.search(line)
        if match:
            return match.group(1)
    return ""


def matches_target(command_line_text: str, target_exe_name: str) -> bool:
    return bool(target_exe_name) and target_exe_name in command_line_text


def proton_path_from_environ(environment_text: str) -> str:
    proton_dir = first_capture(ENVIRON_PROTON_PATH_RE, environment_text)
    return f"{proton_dir}/{PROTON_BINARY}" if proton_dir else ""


def app_exe_from_environ(environment_text: str) -> str:
    return first_capture(ENVIRON_APP_EXE_RE, environment_text)


def proton_path_from_cmdline(command_line_text: str) -> str:
    return first_capture(CMDLINE_PROTON_PATH_RE, command_line_text)


def app_exe_from_cmdline(command_line_text: str) -> str:
    return first_capture(CMDLINE_APP_EXE_RE, command_line_text)


def app_args(command_line_text: str, exe_path: str) -> str:
    """Return whatever follows ``"<exe_path> "`` on the command line, trimmed."""

    if not exe_path:
        return ""
    marker = f"{exe_path} "
    index = command_line_text.find(marker)
    if index < 0:
        return ""
    return command_line_text[index + len(marker) :].strip()


def resolve_proton_and_exe(attributes: RawProcessAttributes) -> Tuple[str, str]:
    """Return ``(proton_path, exe_path)``, preferring the environment.

    Proton builds do not set ``PROTONPATH``/``EXE`` consistently, so unless the
    environment yields both, both come from the command line instead.
    """

    proton = proton_path_from_environ(attributes.environment_text)
    app = app_exe_from_environ(attributes.environment_text)
    if proton and app:
        return proton, app
    return (
        proton_path_from_cmdline(attributes.command_line_text),
        app_exe_from_cmdline(attributes.command_line_text),
    )


def extract_profile(attributes: RawProcessAttributes, target_exe_name: str) -> Optional[AppLaunchProfile]:
    """Build a profile for ``target_exe_name`` from one candidate.

    Returns ``None`` when the candidate's command line does not mention the
    target. A returned profile may still have an empty prefix; deciding what
    that means is up to the caller.
    """

    if not matches_target(attributes.command_line_text, target_exe_name):
        return None

    environ = attributes.environment_text
    proton, app = resolve_proton_and_exe(attributes)
    return AppLaunchProfile(
        target_exe_name=target_exe_name,
        target_exe_path=app,
        target_exe_args=app_args(attributes.command_line_text, app),
        compat_layer_path=proton,
        compat_client_install_path=first_capture(COMPAT_INSTALL_PATH_RE, environ),
        compat_data_path=first_capture(COMPAT_DATA_PATH_RE, environ),
        runtime_root_override=first_capture(DOTNET_ROOT_RE, environ),
    )


__all__ = [
    "app_args",
    "app_exe_from_cmdline",
    "app_exe_from_environ",
    "extract_profile",
    "first_capture",
    "matches_target",
    "proton_path_from_cmdline",
    "proton_path_from_environ",
    "resolve_proton_and_exe",
]
