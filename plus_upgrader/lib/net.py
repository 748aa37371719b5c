from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional, Protocol, Sequence

from ..errors import NetworkUnavailable
from .command import CommandFailed
from .pkg import install_local

if TYPE_CHECKING:
    from ..context import UpgradeCtx

logger = logging.getLogger(__name__)

_TERSE_SPLIT = re.compile(r"(?<!\\):")


class NetworkState(str, Enum):
    UNKNOWN = "unknown"
    PROBING = "probing"
    CONNECTED = "connected"
    FAILED = "failed"


def is_online(run: Callable[..., object], *, address: str = "8.8.8.8", timeout_s: int = 3) -> bool:
    """Single ICMP round trip with a short timeout."""

    try:
        r = run(["ping", "-c", "1", "-W", str(timeout_s), address], check=False)
    except OSError:
        return False
    return getattr(r, "returncode", 1) == 0


def _terse_fields(line: str) -> List[str]:
    # nmcli --terse escapes ':' and '\' inside values.
    return [f.replace("\\:", ":").replace("\\\\", "\\") for f in _TERSE_SPLIT.split(line)]


@dataclass(frozen=True)
class AccessPoint:
    ssid: str
    signal: int
    security: str = ""

    @property
    def is_open(self) -> bool:
        return self.security.strip() in {"", "--"}


def list_wifi_devices(ctx: "UpgradeCtx") -> List[str]:
    r = ctx.run(["nmcli", "--terse", "--fields", "DEVICE,TYPE", "device", "status"], check=False)
    devices: List[str] = []
    for line in (r.stdout or "").splitlines():
        parts = _terse_fields(line)
        if len(parts) >= 2 and parts[1] == "wifi" and parts[0]:
            devices.append(parts[0])
    return devices


def scan_networks(ctx: "UpgradeCtx", *, limit: int = 10) -> List[AccessPoint]:
    """Visible networks, strongest first, hidden SSIDs dropped."""

    ctx.run(["nmcli", "device", "wifi", "rescan"], check=False)
    r = ctx.run(["nmcli", "--terse", "--fields", "SSID,SIGNAL,SECURITY", "device", "wifi", "list"], check=False)

    seen: dict[str, AccessPoint] = {}
    for line in (r.stdout or "").splitlines():
        parts = _terse_fields(line)
        if len(parts) < 2 or not parts[0]:
            continue
        try:
            signal = int(parts[1])
        except ValueError:
            continue
        ap = AccessPoint(ssid=parts[0], signal=signal, security=parts[2] if len(parts) > 2 else "")
        if ap.ssid not in seen or seen[ap.ssid].signal < ap.signal:
            seen[ap.ssid] = ap

    return sorted(seen.values(), key=lambda a: a.signal, reverse=True)[:limit]


def _ask(prompt: Callable[[str], str], message: str) -> str:
    try:
        return prompt(message)
    except EOFError as e:
        raise RuntimeError("No terminal input available for the Wi-Fi prompt") from e


class Strategy(Protocol):
    name: str

    def available(self, ctx: "UpgradeCtx") -> bool:
        ...

    def attempt(self, ctx: "UpgradeCtx") -> None:
        ...


@dataclass(frozen=True)
class LocalPackStrategy:
    """Install network drivers/tools from packages shipped next to the kit."""

    pack_dir: Path
    services: Sequence[str] = ("NetworkManager.service", "iwd.service")
    suffix: str = ".pkg.tar.zst"
    name: str = "local_pack"

    def packages(self) -> List[Path]:
        if not self.pack_dir.is_dir():
            return []
        return sorted(p for p in self.pack_dir.iterdir() if p.is_file() and p.name.endswith(self.suffix))

    def available(self, ctx: "UpgradeCtx") -> bool:
        return bool(self.packages())

    def attempt(self, ctx: "UpgradeCtx") -> None:
        pkgs = self.packages()
        logger.info("Installing %d local network package(s) from %s", len(pkgs), self.pack_dir)
        install_local(ctx, [str(p) for p in pkgs])
        for svc in self.services:
            ctx.run(["systemctl", "start", svc])


@dataclass(frozen=True)
class WifiAssociationStrategy:
    """Interactive Wi-Fi association through NetworkManager's nmcli."""

    ssid: Optional[str] = None
    password: Optional[str] = None
    settle_s: float = 3
    connect_wait_s: float = 5
    scan_limit: int = 10
    name: str = "wifi_nmcli"

    def available(self, ctx: "UpgradeCtx") -> bool:
        if ctx.which("nmcli") is None:
            logger.warning("nmcli not found; connect via Ethernet or ship the local network pack")
            return False
        return True

    def _credentials(self, ctx: "UpgradeCtx") -> tuple[str, str]:
        ssid = (self.ssid or "").strip()
        if not ssid:
            if not ctx.interactive:
                raise RuntimeError("No Wi-Fi SSID configured and prompting is disabled")
            aps = scan_networks(ctx, limit=self.scan_limit)
            for ap in aps:
                print(f"  {ap.ssid:<32} {ap.signal:>3}%  {'open' if ap.is_open else ap.security}")
            ssid = _ask(ctx.prompt, "Wi-Fi network name (SSID): ").strip()
        if not ssid:
            raise RuntimeError("No Wi-Fi network name entered")

        password = self.password
        if password is None:
            password = _ask(ctx.prompt_secret, "Wi-Fi password (empty for open network): ") if ctx.interactive else ""
        return ssid, password

    def attempt(self, ctx: "UpgradeCtx") -> None:
        devices = list_wifi_devices(ctx)
        if not devices and not ctx.dry_run:
            raise RuntimeError("No wireless interface found")
        logger.info("Wireless interfaces: %s", ", ".join(devices) or "(dry run)")

        # Give NetworkManager time to pick up freshly started hardware.
        ctx.sleep(self.settle_s)
        ssid, password = self._credentials(ctx)

        # A stale profile for the same SSID can carry the wrong key management.
        ctx.run(["nmcli", "connection", "delete", ssid], check=False)

        argv = ["nmcli", "device", "wifi", "connect", ssid]
        if password:
            argv += ["password", password]
        ctx.run(argv, secrets=(password,) if password else ())
        ctx.sleep(self.connect_wait_s)


@dataclass
class NetworkReport:
    state: NetworkState = NetworkState.UNKNOWN
    strategy: Optional[str] = None
    attempted: List[str] = field(default_factory=list)
    failures: List[dict] = field(default_factory=list)


def bootstrap_network(
    ctx: "UpgradeCtx",
    *,
    strategies: Sequence[Strategy],
    probe: Callable[[], bool],
) -> NetworkReport:
    """Probe, then walk the strategy chain until reachability comes back.

    A strategy only counts once the probe confirms it; tool-level failures
    move on to the next strategy.
    """

    report = NetworkReport(state=NetworkState.PROBING)
    if probe():
        logger.info("Network already reachable")
        report.state = NetworkState.CONNECTED
        return report

    logger.info("No network; trying %d connection strategies", len(strategies))
    for strategy in strategies:
        if not strategy.available(ctx):
            logger.info("Strategy %s not available; skipping", strategy.name)
            continue

        report.attempted.append(strategy.name)
        logger.info("Trying strategy %s", strategy.name)
        try:
            strategy.attempt(ctx)
        except (CommandFailed, OSError, RuntimeError) as e:
            logger.warning("Strategy %s failed: %s", strategy.name, e)
            report.failures.append({"strategy": strategy.name, "error": str(e)})
            continue

        if probe():
            logger.info("Network reachable via %s", strategy.name)
            report.state = NetworkState.CONNECTED
            report.strategy = strategy.name
            return report

        logger.warning("Strategy %s completed but the network is still unreachable", strategy.name)
        report.failures.append({"strategy": strategy.name, "error": "unreachable after attempt"})

    report.state = NetworkState.FAILED
    raise NetworkUnavailable(
        "No network connection after trying: " + (", ".join(report.attempted) or "no available strategy")
        + ". Connect via Ethernet or check Wi-Fi credentials and re-run."
    )
