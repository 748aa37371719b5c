import logging
import sys

import pytest

from plus_upgrader.lib.command import CommandFailed, run_cmd


def test_run_cmd_captures_output():
    r = run_cmd([sys.executable, "-c", "print('hello')"])
    assert r.returncode == 0
    assert r.stdout.strip() == "hello"


def test_run_cmd_raises_on_failure():
    with pytest.raises(CommandFailed) as exc:
        run_cmd([sys.executable, "-c", "import sys; sys.stderr.write('nope'); sys.exit(3)"])
    assert exc.value.returncode == 3
    assert "nope" in str(exc.value)


def test_run_cmd_unchecked_returns_result():
    r = run_cmd([sys.executable, "-c", "raise SystemExit(2)"], check=False)
    assert r.returncode == 2


def test_dry_run_does_not_execute(tmp_path):
    marker = tmp_path / "ran"
    r = run_cmd([sys.executable, "-c", f"open({str(marker)!r}, 'w').close()"], dry_run=True)
    assert r.returncode == 0
    assert not marker.exists()


def test_secrets_are_masked_in_log_and_errors(caplog):
    caplog.set_level(logging.INFO)
    with pytest.raises(CommandFailed) as exc:
        run_cmd([sys.executable, "-c", "raise SystemExit(1)", "hunter22"], secrets={"hunter22"})

    assert "hunter22" not in caplog.text
    assert "***" in caplog.text
    assert "hunter22" not in str(exc.value)


def test_cwd_is_honoured(tmp_path):
    r = run_cmd([sys.executable, "-c", "import os; print(os.getcwd())"], cwd=str(tmp_path))
    assert r.stdout.strip() == str(tmp_path.resolve())
