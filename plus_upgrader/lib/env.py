from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    report_default: str = "/var/lib/plus-upgrader/last-run.json"
    log_default: str = "/var/log/plus-upgrader.log"
    config_name: str = "plus-upgrader.yaml"
    pacman_lock: str = "/var/lib/pacman/db.lck"


PATHS = Paths()
