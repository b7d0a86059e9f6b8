from pathlib import Path

import pytest

from proton_handler.profile_store import AppLaunchProfile, ProfileStore, ProfileStoreError, default_config_path


def _profile(name: str = "MO2.exe", **overrides: str) -> AppLaunchProfile:
    fields = dict(
        target_exe_path="/games/MO2/ModOrganizer.exe",
        target_exe_args="",
        compat_layer_path="/proton/proton",
        compat_client_install_path="/steam",
        compat_data_path="/steam/compatdata/1",
        runtime_root_override="",
    )
    fields.update(overrides)
    return AppLaunchProfile(target_exe_name=name, **fields)


def test_missing_file_has_no_profiles(tmp_path: Path) -> None:
    assert ProfileStore(tmp_path / "config.ini").get("MO2.exe") is None


def test_put_then_get(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path / "nested" / "config.ini")
    profile = _profile(target_exe_args="-p 100% Default", runtime_root_override="/opt/dotnet")

    store.put(profile)

    assert store.get("MO2.exe") == profile
    assert not (tmp_path / "nested" / "config.ini.tmp").exists()


def test_on_disk_layout_keeps_key_case(tmp_path: Path) -> None:
    path = tmp_path / "config.ini"
    ProfileStore(path).put(_profile())
    text = path.read_text()

    assert "[MO2.exe]" in text
    assert "STEAM_COMPAT_DATA_PATH = /steam/compatdata/1" in text
    assert "APP = /games/MO2/ModOrganizer.exe" in text


def test_put_is_idempotent(tmp_path: Path) -> None:
    path = tmp_path / "config.ini"
    store = ProfileStore(path)
    store.put(_profile())
    first = path.read_text()
    store.put(_profile())

    assert path.read_text() == first
    assert store.get("MO2.exe") == _profile()


def test_put_overwrites_whole_section_only(tmp_path: Path) -> None:
    path = tmp_path / "config.ini"
    path.write_text(
        "[MO2.exe]\nAPP = /old.exe\nEXTRA = stale\nSTEAM_COMPAT_DATA_PATH = /old\n\n"
        "[Vortex.exe]\nAPP = /vortex.exe\nSTEAM_COMPAT_DATA_PATH = /pfx/2\n"
    )
    store = ProfileStore(path)
    store.put(_profile())

    assert store.get("MO2.exe") == _profile()
    assert "EXTRA" not in path.read_text()
    vortex = store.get("Vortex.exe")
    assert vortex.target_exe_path == "/vortex.exe"
    assert vortex.compat_data_path == "/pfx/2"
    assert vortex.target_exe_args == ""


def test_section_without_prefix_is_not_found(tmp_path: Path) -> None:
    path = tmp_path / "config.ini"
    path.write_text("[MO2.exe]\nAPP = /a.exe\nSTEAM_COMPAT_DATA_PATH =\n")
    assert ProfileStore(path).get("MO2.exe") is None


def test_refuses_profile_without_prefix(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path / "config.ini")
    with pytest.raises(ValueError):
        store.put(_profile(compat_data_path=""))
    assert not (tmp_path / "config.ini").exists()


def test_corrupt_file_reads_as_empty(tmp_path: Path, logger) -> None:
    path = tmp_path / "config.ini"
    path.write_text("APP = no section header\n")
    store = ProfileStore(path, logger=logger)

    assert store.get("MO2.exe") is None
    assert "Ignoring unreadable profile store" in logger.path.read_text()


def test_put_refuses_to_rewrite_unparseable_file(tmp_path: Path) -> None:
    path = tmp_path / "config.ini"
    path.write_text("APP = no section header\n[Vortex.exe]\nSTEAM_COMPAT_DATA_PATH = /pfx/2\n")
    before = path.read_text()

    with pytest.raises(ProfileStoreError):
        ProfileStore(path).put(_profile())
    assert path.read_text() == before


def test_duplicate_keys_do_not_drop_other_profiles(tmp_path: Path) -> None:
    path = tmp_path / "config.ini"
    path.write_text(
        "[Vortex.exe]\nAPP = /old/vortex.exe\nAPP = /vortex.exe\nSTEAM_COMPAT_DATA_PATH = /pfx/2\n"
    )
    store = ProfileStore(path)
    store.put(_profile())

    assert store.get("MO2.exe") == _profile()
    vortex = store.get("Vortex.exe")
    assert vortex is not None
    assert vortex.target_exe_path == "/vortex.exe"


def test_default_config_path_override(tmp_path: Path) -> None:
    override = tmp_path / "other.ini"
    assert default_config_path({"PROTON_HANDLER_CONFIG": str(override)}) == override
    assert default_config_path({}).name == "config.ini"
