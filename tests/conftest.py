from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import pytest

from plus_upgrader.config import load_config
from plus_upgrader.context import UpgradeCtx
from plus_upgrader.lib.command import CmdResult, CommandFailed

ReturnCode = Union[int, Callable[[List[str]], int]]


class FakeRunner:
    """Records every argv; answers with canned return codes by argv prefix.

    Later rules win over earlier ones. Unmatched commands succeed.
    """

    def __init__(self, events: Optional[List[str]] = None) -> None:
        self.calls: List[List[str]] = []
        self.cwds: List[Optional[str]] = []
        self.events = events if events is not None else []
        self._rules: List[tuple] = []

    def on(self, *prefix: str, returncode: ReturnCode = 0, stdout: str = "", stderr: str = "") -> "FakeRunner":
        self._rules.insert(0, (list(prefix), returncode, stdout, stderr))
        return self

    def __call__(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        env=None,
        cwd: Optional[str] = None,
        input_text: Optional[str] = None,
        dry_run: bool = False,
        secrets=(),
    ) -> CmdResult:
        argv = list(argv)
        self.calls.append(argv)
        self.cwds.append(cwd)
        self.events.append(" ".join(argv))
        if dry_run:
            return CmdResult(argv=argv, returncode=0, stdout="", stderr="")

        rc, out, err = 0, "", ""
        for prefix, returncode, stdout, stderr in self._rules:
            if argv[: len(prefix)] == prefix:
                rc = returncode(argv) if callable(returncode) else returncode
                out, err = stdout, stderr
                break

        result = CmdResult(argv=argv, returncode=rc, stdout=out, stderr=err)
        if check and rc != 0:
            raise CommandFailed(result, " ".join(argv))
        return result

    def called(self, *prefix: str) -> List[List[str]]:
        return [c for c in self.calls if c[: len(prefix)] == list(prefix)]


class FakeBuilder:
    """Stands in for the unprivileged build account."""

    def __init__(self, *, produce: Sequence[str] = ("module-1.0-1-x86_64.pkg.tar.zst",), fail: bool = False) -> None:
        self.user = "builder"
        self.uid = os.getuid()
        self.gid = os.getgid()
        self.produce = list(produce)
        self.fail = fail
        self.runs: List[tuple] = []

    def run(self, argv: Sequence[str], *, cwd: str) -> CmdResult:
        self.runs.append((list(argv), cwd))
        result = CmdResult(argv=list(argv), returncode=1 if self.fail else 0, stdout="", stderr="boom" if self.fail else "")
        if self.fail:
            raise CommandFailed(result, " ".join(argv))
        for name in self.produce:
            (Path(cwd) / name).write_bytes(b"pkg")
        return result


def write(path: Path, content: str, mode: Optional[int] = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    if mode is not None:
        os.chmod(path, mode)
    return path


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def deployment(tmp_path: Path) -> Path:
    root = tmp_path / "frzr_root" / "deployments" / "kazeta-1.6"
    (root / "etc").mkdir(parents=True)
    (root / "usr" / "bin").mkdir(parents=True)
    (root / "usr" / "share").mkdir(parents=True)
    (root / "home" / "gamer").mkdir(parents=True)
    return root


@pytest.fixture
def kit(tmp_path: Path) -> Path:
    k = tmp_path / "kit"
    (k / "rootfs" / "etc").mkdir(parents=True)
    (k / "rootfs" / "usr" / "bin").mkdir(parents=True)
    return k


@pytest.fixture
def make_ctx(tmp_path: Path, kit: Path, deployment: Path, runner: FakeRunner):
    """Build an UpgradeCtx whose owners are the current user and whose tools are fakes."""

    def _make(overrides: Optional[Dict[str, Any]] = None, **ctx_kwargs: Any) -> UpgradeCtx:
        uid, gid = os.getuid(), os.getgid()
        raw: Dict[str, Any] = {
            "target": {"search_patterns": [str(tmp_path / "frzr_root" / "deployments" / "kazeta-*")]},
            "identity": {"user": "gamer", "uid": uid, "gid": gid, "root_uid": uid, "root_gid": gid},
            "network": {"settle_s": 0, "connect_wait_s": 0},
            "packages": {"lock_path": str(tmp_path / "db.lck"), "install": []},
            "services": {"enable": [], "user_units": []},
        }
        for key, value in (overrides or {}).items():
            if isinstance(value, dict) and isinstance(raw.get(key), dict):
                raw[key].update(value)
            else:
                raw[key] = value

        cfg_path = tmp_path / "config.json"
        cfg_path.write_text(json.dumps(raw), encoding="utf-8")

        kwargs: Dict[str, Any] = {
            "cfg": load_config(str(cfg_path)),
            "kit_dir": kit,
            "runner": runner,
            "builder": FakeBuilder(),
            "prompt": lambda _msg: pytest.fail("unexpected prompt"),
            "prompt_secret": lambda _msg: pytest.fail("unexpected secret prompt"),
            "sleep": lambda _s: None,
            "geteuid": lambda: 0,
            "which": lambda name: f"/usr/bin/{name}",
        }
        kwargs.update(ctx_kwargs)
        return UpgradeCtx(**kwargs)

    return _make


def tree_snapshot(root: Path) -> Dict[str, tuple]:
    snap: Dict[str, tuple] = {}
    for p in sorted(root.rglob("*")):
        rel = str(p.relative_to(root))
        if p.is_symlink():
            snap[rel] = ("link", os.readlink(p))
        elif p.is_file():
            snap[rel] = ("file", p.read_bytes(), p.stat().st_mode & 0o7777)
        else:
            snap[rel] = ("dir", p.stat().st_mode & 0o7777)
    return snap
