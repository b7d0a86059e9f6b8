"""Discover a running Proton game and relaunch Proton into the same prefix."""

from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from .constants import (
    ENV_COMPAT_CLIENT_PATH,
    ENV_COMPAT_DATA_PATH,
    ENV_DOTNET_ROOT,
    LAUNCHER_IDENTIFIERS,
    PROC_ROOT,
    PROTON_VERB,
    READ_TIMEOUT_SECONDS,
)
from .extraction import extract_profile
from .logging_utils import LOG_LEVEL_WARNING, AppLogger
from .processes import ProcessHandle, find_launcher_processes, read_all_attributes
from .profile_store import AppLaunchProfile, ProfileStore, ProfileStoreError

DISCOVER_LOCATION = "discover"
LAUNCH_LOCATION = "launch"
SOURCE_LIVE = "live"
SOURCE_CACHE = "cache"


class ProtonHandlerError(RuntimeError):
    """Base class for failures that stop the handler before or during launch."""


class DiscoveryError(ProtonHandlerError):
    pass


class MissingPrefixError(DiscoveryError):
    def __init__(self, target_exe_name: str, pid: int) -> None:
        super().__init__(
            f"Found a running process for {target_exe_name} (PID {pid}), "
            "but could not determine Proton's current prefix (STEAM_COMPAT_DATA_PATH)."
        )
        self.target_exe_name = target_exe_name
        self.pid = pid


class NoProfileError(DiscoveryError):
    def __init__(self, target_exe_name: str) -> None:
        super().__init__(
            f"Could not find a running process for {target_exe_name}, and no stored config exists."
        )
        self.target_exe_name = target_exe_name


class LaunchError(ProtonHandlerError):
    pass


@dataclass(frozen=True)
class ResolvedProfile:
    profile: AppLaunchProfile
    source: str
    pid: Optional[int] = None


Runner = Callable[..., "subprocess.CompletedProcess"]


def build_command(profile: AppLaunchProfile, passthrough_args: Sequence[str]) -> List[str]:
    """Return ``[proton, "run", exe, args?, *passthrough]``.

    The stored argument string is passed as one argv entry and left out
    entirely when empty.
    """

    command = [profile.compat_layer_path, PROTON_VERB, profile.target_exe_path]
    if profile.target_exe_args:
        command.append(profile.target_exe_args)
    command.extend(passthrough_args)
    return command


def build_environment(profile: AppLaunchProfile, base_environ: Mapping[str, str]) -> Dict[str, str]:
    env = dict(base_environ)
    if profile.runtime_root_override:
        env[ENV_DOTNET_ROOT] = profile.runtime_root_override
    else:
        # A host .NET install must not leak into the prefix.
        env.pop(ENV_DOTNET_ROOT, None)
    env[ENV_COMPAT_CLIENT_PATH] = profile.compat_client_install_path
    env[ENV_COMPAT_DATA_PATH] = profile.compat_data_path
    return env


def shell_exit_code(returncode: int) -> int:
    """Map a child killed by signal N (``returncode == -N``) to ``128 + N``."""

    return 128 - returncode if returncode < 0 else returncode


def describe_launch(profile: AppLaunchProfile, command: Sequence[str]) -> str:
    """Return a shell line equivalent to the launch, for the log."""

    overlay = [f"{ENV_COMPAT_CLIENT_PATH}={profile.compat_client_install_path}"]
    overlay.append(f"{ENV_COMPAT_DATA_PATH}={profile.compat_data_path}")
    if profile.runtime_root_override:
        overlay.insert(0, f"{ENV_DOTNET_ROOT}={profile.runtime_root_override}")
    return shlex.join([*overlay, *command])


class LaunchCoordinator:
    """Ties process discovery, the profile store and the final launch together.

    Discovery only ever uses the first candidate whose command line mentions
    the target; one live game per target is expected.
    """

    def __init__(
        self,
        store: ProfileStore,
        *,
        logger: AppLogger,
        environ: Mapping[str, str],
        identifiers: Sequence[str] = LAUNCHER_IDENTIFIERS,
        proc_root: Path = PROC_ROOT,
        read_timeout: float = READ_TIMEOUT_SECONDS,
        enumerate_processes: Callable[[Sequence[str]], List[ProcessHandle]] = find_launcher_processes,
        runner: Runner = subprocess.run,
    ) -> None:
        self.store = store
        self.logger = logger
        self.environ = dict(environ)
        self.identifiers = tuple(identifiers)
        self.proc_root = proc_root
        self.read_timeout = read_timeout
        self._enumerate = enumerate_processes
        self._runner = runner

    def _log(self, message: str, **kwargs) -> None:
        kwargs.setdefault("include_context", True)
        kwargs.setdefault("mirror_console", True)
        self.logger.log(message, **kwargs)

    def discover_live(self, target_exe_name: str) -> Optional[ResolvedProfile]:
        """Return the profile of the first matching live process, if any.

        Raises :class:`MissingPrefixError` when the matching process has no
        ``STEAM_COMPAT_DATA_PATH``.
        """

        with self.logger.context(DISCOVER_LOCATION):
            candidates = self._enumerate(self.identifiers)
            self._log(
                f"Found {len(candidates)} processes matching {' and '.join(self.identifiers)}"
            )
            outcomes = read_all_attributes(candidates, proc_root=self.proc_root, timeout=self.read_timeout)
            for outcome in outcomes:
                handle = outcome.handle
                if not outcome.ok:
                    self._log(
                        f"Skipping PID {handle.pid} ({handle.name}): {outcome.error}",
                        level=LOG_LEVEL_WARNING,
                    )
                    continue

                self._log(f"Process Name: {handle.name}, PID: {handle.pid}")
                profile = extract_profile(outcome.attributes, target_exe_name)
                if profile is None:
                    continue

                self._log(f"Match found in PID {handle.pid}")
                if not profile.is_usable:
                    raise MissingPrefixError(target_exe_name, handle.pid)
                return ResolvedProfile(profile, SOURCE_LIVE, handle.pid)
        return None

    def resolve(self, target_exe_name: str) -> ResolvedProfile:
        """Return a usable profile from a live process or the store.

        A live profile is written to the store before it is returned; a cached
        one is returned untouched.
        """

        self._log(f"Searching for '{target_exe_name}'")
        resolved = self.discover_live(target_exe_name)
        if resolved is not None:
            self._log("Found running process. Writing to config file.")
            try:
                self.store.put(resolved.profile)
            except (OSError, ProfileStoreError) as exc:
                self._log(
                    f"Could not write {self.store.path}: {exc}; launching without saving.",
                    level=LOG_LEVEL_WARNING,
                )
            return resolved

        cached = self.store.get(target_exe_name)
        if cached is None:
            raise NoProfileError(target_exe_name)
        self._log("Could not find running process, but stored config exists.")
        return ResolvedProfile(cached, SOURCE_CACHE)

    def launch(self, profile: AppLaunchProfile, passthrough_args: Sequence[str]) -> int:
        command = build_command(profile, passthrough_args)
        env = build_environment(profile, self.environ)
        with self.logger.context(LAUNCH_LOCATION):
            self.logger.log_lines(
                "Profile",
                [
                    f"DOTNET_ROOT: {profile.runtime_root_override}",
                    f"SteamDir: {profile.compat_client_install_path}",
                    f"Prefix: {profile.compat_data_path}",
                    f"Proton: {profile.compat_layer_path}",
                    f"App: {profile.target_exe_path}",
                    f"Args: {profile.target_exe_args}",
                    f"Passthrough: {' '.join(passthrough_args)}",
                ],
                mirror_console=True,
            )
            self._log(describe_launch(profile, command))
            try:
                result = self._runner(command, env=env, check=False)
            except OSError as exc:
                raise LaunchError(f"Could not start {profile.compat_layer_path!r}: {exc}") from exc
            exit_code = shell_exit_code(result.returncode)
            self._log(f"Exit Code: {exit_code}")
        return exit_code

    def run(self, target_exe_name: str, passthrough_args: Sequence[str]) -> int:
        resolved = self.resolve(target_exe_name)
        if not resolved.profile.compat_layer_path:
            raise LaunchError(f"No Proton binary is known for {target_exe_name}.")
        return self.launch(resolved.profile, passthrough_args)


__all__ = [
    "DiscoveryError",
    "LaunchCoordinator",
    "LaunchError",
    "MissingPrefixError",
    "NoProfileError",
    "ProtonHandlerError",
    "ResolvedProfile",
    "build_command",
    "build_environment",
    "describe_launch",
    "shell_exit_code",
]
