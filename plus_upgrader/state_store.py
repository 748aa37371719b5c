from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def new_state(*, version: str) -> Dict[str, Any]:
    """Fresh run state. Nothing is carried over from earlier runs."""

    return {
        "version": version,
        "execution": {
            "current_step": None,
            "ran_steps": [],
            "target_root": None,
            "decisions": {},
            "changed": {},
            "warnings": [],
            "errors": [],
        },
    }


def add_warning(state: Dict[str, Any], **details: Any) -> None:
    state.setdefault("execution", {}).setdefault("warnings", []).append(details)


def record_decision(state: Dict[str, Any], key: str, value: Any) -> None:
    state.setdefault("execution", {}).setdefault("decisions", {})[key] = value


def save_state(path: str, state: Dict[str, Any]) -> None:
    """Write the run report (json|yaml by extension)."""

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    fmt = _detect_format(p)
    if fmt in {"yaml", "yml"}:
        try:
            import yaml  # type: ignore
        except Exception as e:  # pragma: no cover
            raise RuntimeError(
                "YAML report requested but PyYAML is not available. Use a .json report path."
            ) from e
        p.write_text(yaml.safe_dump(state, sort_keys=False) + "\n", encoding="utf-8")
    else:
        p.write_text(json.dumps(state, indent=2, sort_keys=True, default=str) + "\n", encoding="utf-8")
