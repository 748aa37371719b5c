from __future__ import annotations

import glob
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Sequence

from ..errors import PreconditionFailed, TargetNotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeploymentTarget:
    root: Path

    @property
    def etc(self) -> Path:
        return self.root / "etc"

    @property
    def usr_bin(self) -> Path:
        return self.root / "usr/bin"

    @property
    def usr_share(self) -> Path:
        return self.root / "usr/share"

    def home(self, user: str) -> Path:
        return self.root / "home" / user

    def path(self, rel: str) -> Path:
        return self.root / rel.lstrip("/")


def locate_deployment(patterns: Sequence[str]) -> DeploymentTarget:
    """Return the first directory matching the ordered glob patterns."""

    for pattern in patterns:
        matches = sorted(p for p in glob.glob(pattern) if Path(p).is_dir())
        if matches:
            logger.info("Deployment found: %s (pattern %s)", matches[0], pattern)
            if len(matches) > 1:
                logger.info("Ignoring other deployments: %s", ", ".join(matches[1:]))
            return DeploymentTarget(root=Path(matches[0]))
        logger.debug("No deployment under %s", pattern)

    raise TargetNotFound(
        "Could not find a deployment directory (searched: "
        + ", ".join(patterns)
        + "). Is the deployment unlocked or the card mounted?"
    )


def target_from_state(state: Dict[str, Any]) -> DeploymentTarget:
    root = (state.get("execution") or {}).get("target_root")
    if not root:
        raise PreconditionFailed("execution.target_root missing; run the preflight step first")
    return DeploymentTarget(root=Path(root))
