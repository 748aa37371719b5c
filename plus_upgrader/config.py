from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .lib.env import PATHS

DEFAULTS: Dict[str, Any] = {
    "dry_run": False,
    "target": {
        # Unlocked running system first, then a card mounted on another machine.
        "search_patterns": [
            "/frzr_root/deployments/kazeta-*",
            "/run/media/*/frzr_root/deployments/kazeta-*",
        ],
    },
    "identity": {
        # The console's default account: builds the module and owns user assets.
        "user": "gamer",
        "uid": 1000,
        "gid": 1000,
        "root_uid": 0,
        "root_gid": 0,
    },
    "network": {
        "probe_address": "8.8.8.8",
        "probe_timeout_s": 3,
        "interactive": True,
        "local_pack_dir": "kazeta-wifi-pack",
        "local_pack_services": ["NetworkManager.service", "iwd.service"],
        "settle_s": 3,
        "connect_wait_s": 5,
        "scan_limit": 10,
        "wifi_ssid": None,
        "wifi_password": None,
    },
    "packages": {
        "lock_path": PATHS.pacman_lock,
        "refresh": True,
        "install": [
            "brightnessctl", "keyd", "rsync", "xxhash", "iwd", "networkmanager",
            "ffmpeg", "unzip", "bluez", "bluez-utils",
            "base-devel", "dkms", "linux-headers",
            "noto-fonts", "ttf-dejavu", "ttf-liberation", "noto-fonts-emoji",
            "pipewire-alsa", "alsa-utils",
            "mangohud", "lib32-mangohud", "gamemode", "lib32-gamemode", "openssh", "nano",
            "clang",
            # steam would otherwise try to own /etc/lsb-release.
            {"name": "steam", "assume_installed": ["lsb-release"]},
        ],
    },
    "module": {
        "source_dir": "aur-pkgs/gcadapter-oc-dkms",
        "descriptor": "PKGBUILD",
        "artifact_suffix": ".pkg.tar.zst",
        "optional": False,
    },
    "deploy": {
        "staging_dir": "rootfs",
        "sync_trees": ["etc", "usr/share"],
        "executables_dir": "usr/bin",
        "executable_mode": 0o755,
        "policy_files": [{"path": "etc/sudoers", "mode": 0o440}],
        "expected_files": ["etc/udev/rules.d/51-gcadapter.rules"],
        "device_rules_dir": "etc/udev/rules.d",
    },
    "permissions": {
        "trees": [
            {"path": "etc/sudoers.d", "dir_mode": 0o755, "file_mode": 0o440},
            {"path": "etc/udev/rules.d", "dir_mode": 0o755, "file_mode": 0o644},
        ],
    },
    "services": {
        "daemon_reload": True,
        # Reload udev even when this run deployed no rule changes (partial runs).
        "force_udev_reload": False,
        "enable": [
            "keyd.service",
            "kazeta-profile-loader.service",
            "NetworkManager.service",
            "iwd.service",
            "bluetooth.service",
            "sshd.service",
        ],
        "user_units": [
            {
                "unit": "pipewire-pulse.service",
                "wanted_by": "default.target",
                "unit_path": "/usr/lib/systemd/user/pipewire-pulse.service",
            }
        ],
    },
    "assets": {
        "source_dir": "assets",
        "dest_rel": ".local/share/kazeta-plus",
    },
    "finalize": {
        "reboot": False,
    },
}


def _merge_defaults(raw: Dict[str, Any], defaults: Dict[str, Any]) -> Dict[str, Any]:
    """Fill missing keys from defaults, recursing into mappings, never overriding user values."""

    out = dict(raw)
    for key, value in defaults.items():
        if key not in out:
            out[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(out[key], dict):
            out[key] = _merge_defaults(out[key], value)
    return out


def parse_mode(value: Any) -> int:
    """Accept 0o755 / 493 as ints or "0755" / "755" as octal strings."""

    if isinstance(value, bool):
        raise ValueError(f"Invalid file mode: {value!r}")
    if isinstance(value, int):
        return value
    return int(str(value).strip(), 8)


@dataclass(frozen=True)
class PackageEntry:
    name: str
    assume_installed: tuple[str, ...] = ()


@dataclass(frozen=True)
class UpgradeConfig:
    raw: Dict[str, Any]

    def section(self, name: str) -> Dict[str, Any]:
        return dict(self.raw.get(name) or {})

    @property
    def dry_run(self) -> bool:
        return bool(self.raw.get("dry_run", False))

    @property
    def search_patterns(self) -> List[str]:
        return [str(p) for p in (self.section("target").get("search_patterns") or [])]

    @property
    def user(self) -> str:
        return str(self.section("identity").get("user") or "gamer")

    @property
    def user_ids(self) -> tuple[int, int]:
        ident = self.section("identity")
        return int(ident.get("uid", 1000)), int(ident.get("gid", 1000))

    @property
    def root_ids(self) -> tuple[int, int]:
        ident = self.section("identity")
        return int(ident.get("root_uid", 0)), int(ident.get("root_gid", 0))

    @property
    def packages(self) -> List[PackageEntry]:
        entries: List[PackageEntry] = []
        for item in self.section("packages").get("install") or []:
            if isinstance(item, dict):
                name = str(item.get("name") or "").strip()
                assume = tuple(str(a) for a in (item.get("assume_installed") or []))
            else:
                name, assume = str(item).strip(), ()
            if not name:
                raise ValueError(f"packages.install entry without a name: {item!r}")
            entries.append(PackageEntry(name=name, assume_installed=assume))
        return entries

    @property
    def services(self) -> List[str]:
        return [str(s) for s in (self.section("services").get("enable") or [])]


def _read_mapping(p: Path) -> Dict[str, Any]:
    if p.suffix.lower() in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except Exception as e:
            raise RuntimeError("PyYAML is required to read YAML configuration") from e
        try:
            raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"{p} is not valid YAML: {e}") from e
    else:
        raw = json.loads(p.read_text(encoding="utf-8"))

    if not isinstance(raw, dict):
        raise ValueError(f"{p} must contain a mapping/object")
    return raw


def load_config(path: Optional[str] = None, *, kit_dir: Optional[str] = None) -> UpgradeConfig:
    """Load the upgrade configuration.

    An explicit path must exist. Without one, `<kit>/plus-upgrader.yaml` is used
    when present, otherwise the built-in defaults apply unchanged.
    """

    raw: Dict[str, Any] = {}
    if path:
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(path)
        raw = _read_mapping(p)
    elif kit_dir:
        p = Path(kit_dir) / PATHS.config_name
        if p.exists():
            raw = _read_mapping(p)

    return UpgradeConfig(raw=_merge_defaults(raw, DEFAULTS))
