"""Persistent launch profiles, one INI section per target executable.

The on-disk layout is a plain INI file so it can be inspected and edited by
hand::

    [MO2.exe]
    APP = /home/deck/Games/MO2/ModOrganizer.exe
    ARGS =
    PROTON = /home/deck/.steam/steam/steamapps/common/Proton 9.0/proton
    STEAM_COMPAT_CLIENT_INSTALL_PATH = /home/deck/.steam/steam
    STEAM_COMPAT_DATA_PATH = /home/deck/.steam/steam/steamapps/compatdata/123
    DOTNET_ROOT =
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .constants import (
    APP_KEY,
    ARGS_KEY,
    COMPAT_CLIENT_PATH_KEY,
    COMPAT_DATA_PATH_KEY,
    CONFIG_FILE,
    CONFIG_FILE_ENV,
    DOTNET_ROOT_KEY,
    ENCODING_ERRORS,
    ENCODING_UTF8,
    PROTON_KEY,
)
from .logging_utils import LOG_LEVEL_WARNING, AppLogger


@dataclass(frozen=True)
class AppLaunchProfile:
    target_exe_name: str
    target_exe_path: str = ""
    target_exe_args: str = ""
    compat_layer_path: str = ""
    compat_client_install_path: str = ""
    compat_data_path: str = ""
    runtime_root_override: str = ""

    @property
    def is_usable(self) -> bool:
        """A profile without a prefix cannot be relaunched."""

        return bool(self.compat_data_path)

    def to_section(self) -> Dict[str, str]:
        return {
            APP_KEY: self.target_exe_path,
            ARGS_KEY: self.target_exe_args,
            PROTON_KEY: self.compat_layer_path,
            COMPAT_CLIENT_PATH_KEY: self.compat_client_install_path,
            COMPAT_DATA_PATH_KEY: self.compat_data_path,
            DOTNET_ROOT_KEY: self.runtime_root_override,
        }

    @classmethod
    def from_section(cls, target_exe_name: str, section) -> "AppLaunchProfile":
        return cls(
            target_exe_name=target_exe_name,
            target_exe_path=section.get(APP_KEY, ""),
            target_exe_args=section.get(ARGS_KEY, ""),
            compat_layer_path=section.get(PROTON_KEY, ""),
            compat_client_install_path=section.get(COMPAT_CLIENT_PATH_KEY, ""),
            compat_data_path=section.get(COMPAT_DATA_PATH_KEY, ""),
            runtime_root_override=section.get(DOTNET_ROOT_KEY, ""),
        )


def default_config_path(environ: Optional[Dict[str, str]] = None) -> Path:
    env = os.environ if environ is None else environ
    override = env.get(CONFIG_FILE_ENV)
    return Path(override).expanduser() if override else CONFIG_FILE


def _new_parser() -> configparser.ConfigParser:
    # Non-strict: a hand-edited duplicate key or section keeps the last value.
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    # Keys are environment variable names; keep their case.
    parser.optionxform = str  # type: ignore[assignment]
    return parser


class ProfileStoreError(RuntimeError):
    """The store file exists but cannot be read back."""


class ProfileStore:
    """Last-known-good launch profiles keyed by target executable name."""

    def __init__(self, path: Optional[Path] = None, *, logger: Optional[AppLogger] = None) -> None:
        self.path = Path(path) if path else default_config_path()
        self._logger = logger

    def _read(self) -> configparser.ConfigParser:
        parser = _new_parser()
        if not self.path.exists():
            return parser
        try:
            with self.path.open("r", encoding=ENCODING_UTF8, errors=ENCODING_ERRORS) as handle:
                parser.read_file(handle)
        except (OSError, configparser.Error) as exc:
            raise ProfileStoreError(f"cannot read profile store {self.path}: {exc}") from exc
        return parser

    def _load(self) -> configparser.ConfigParser:
        try:
            return self._read()
        except ProfileStoreError as exc:
            if self._logger:
                self._logger.log(
                    f"Ignoring unreadable profile store {self.path}: {exc.__cause__}",
                    level=LOG_LEVEL_WARNING,
                    location="profile-store",
                )
            return _new_parser()

    def get(self, target_exe_name: str) -> Optional[AppLaunchProfile]:
        """Return the stored profile, or ``None`` when missing or unusable."""

        parser = self._load()
        if not parser.has_section(target_exe_name):
            return None
        profile = AppLaunchProfile.from_section(target_exe_name, parser[target_exe_name])
        return profile if profile.is_usable else None

    def put(self, profile: AppLaunchProfile) -> None:
        """Replace the whole section for ``profile`` and persist immediately.

        Raises :class:`ProfileStoreError` instead of rewriting a file that
        could not be parsed, so other profiles are never lost.
        """

        if not profile.is_usable:
            raise ValueError(f"refusing to store profile without a prefix for {profile.target_exe_name!r}")

        parser = self._read()
        if parser.has_section(profile.target_exe_name):
            parser.remove_section(profile.target_exe_name)
        parser.add_section(profile.target_exe_name)
        for key, value in profile.to_section().items():
            parser.set(profile.target_exe_name, key, value)
        self._save(parser)

    def _save(self, parser: configparser.ConfigParser) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with tmp.open("w", encoding=ENCODING_UTF8, errors=ENCODING_ERRORS) as handle:
                parser.write(handle)
                handle.flush()
                os.fsync(handle.fileno())
            tmp.replace(self.path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise


__all__ = ["AppLaunchProfile", "ProfileStore", "ProfileStoreError", "default_config_path"]
