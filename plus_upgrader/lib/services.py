from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, List, Sequence

from ..errors import ServiceActivationFailed
from .command import CommandFailed

if TYPE_CHECKING:
    from ..context import UpgradeCtx

logger = logging.getLogger(__name__)


def reload_device_rules(ctx: "UpgradeCtx") -> None:
    ctx.run(["udevadm", "control", "--reload-rules"])
    ctx.run(["udevadm", "trigger"])


def daemon_reload(ctx: "UpgradeCtx") -> None:
    ctx.run(["systemctl", "daemon-reload"])


def is_active(ctx: "UpgradeCtx", service: str) -> bool:
    r = ctx.run(["systemctl", "is-active", "--quiet", service], check=False)
    return r.returncode == 0


def activate_service(ctx: "UpgradeCtx", service: str) -> bool:
    """Enable a unit and start it unless it is already running.

    Returns True when a start was issued.
    """

    try:
        ctx.run(["systemctl", "enable", service])
        if is_active(ctx, service):
            logger.info("Service %s already running", service)
            return False
        ctx.run(["systemctl", "start", service])
        return True
    except (CommandFailed, OSError) as e:
        raise ServiceActivationFailed(service, f"Could not enable/start {service}: {e}") from e


def activate_services(ctx: "UpgradeCtx", services: Sequence[str]) -> List[ServiceActivationFailed]:
    """Activate each service independently; failures are collected, not raised."""

    failures: List[ServiceActivationFailed] = []
    for service in services:
        logger.info("Enabling and starting %s", service)
        try:
            activate_service(ctx, service)
        except ServiceActivationFailed as e:
            logger.error("%s", e)
            failures.append(e)
    return failures


@dataclass(frozen=True)
class UserUnitLink:
    unit: str
    wanted_by: str
    unit_path: str


def link_user_unit(home: Path, link: UserUnitLink, *, dry_run: bool = False) -> Path:
    """Equivalent of `systemctl --user enable` for an account that is not logged in."""

    wants = home / ".config/systemd/user" / f"{link.wanted_by}.wants"
    dest = wants / link.unit
    if dry_run:
        logger.info("Would link %s -> %s", dest, link.unit_path)
        return dest

    wants.mkdir(parents=True, exist_ok=True)
    if dest.is_symlink() and os.readlink(dest) == link.unit_path:
        return dest
    if dest.is_symlink() or dest.exists():
        dest.unlink()
    dest.symlink_to(link.unit_path)
    logger.info("Linked user unit %s -> %s", dest, link.unit_path)
    return dest
