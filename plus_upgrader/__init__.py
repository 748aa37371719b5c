"""Console deployment upgrader (Python-first, stage-driven).

Core design goals:
- Safe to re-run on a partially upgraded system
- Idempotent stages, fail fast on fatal errors
- Network fallback chain (wired, local pack, Wi-Fi)
- Backups for every superseded binary or policy file
- Centralized logging
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
