import os
import stat

from conftest import write
from plus_upgrader.lib.perms import normalize_tree
from plus_upgrader.steps import NormalizePermissionsStep


def _mode(p):
    return stat.S_IMODE(p.stat().st_mode)


def test_normalize_tree_forces_modes(tmp_path):
    d = tmp_path / "sudoers.d"
    write(d / "99-plus", "gamer ALL=(ALL) NOPASSWD: ALL", mode=0o666)
    write(d / "nested" / "10-extra", "x", mode=0o600)
    os.chmod(d / "nested", 0o700)
    os.chmod(d, 0o700)

    changed = normalize_tree(d, uid=os.getuid(), gid=os.getgid(), dir_mode=0o755, file_mode=0o440)

    assert changed == 4
    assert _mode(d) == 0o755
    assert _mode(d / "nested") == 0o755
    assert _mode(d / "99-plus") == 0o440
    assert _mode(d / "nested" / "10-extra") == 0o440
    assert normalize_tree(d, uid=os.getuid(), gid=os.getgid(), dir_mode=0o755, file_mode=0o440) == 0


def test_step_normalizes_policy_and_rule_dirs(make_ctx, deployment):
    write(deployment / "etc" / "sudoers.d" / "99-plus", "policy", mode=0o644)
    write(deployment / "etc" / "udev" / "rules.d" / "51-gcadapter.rules", "rule", mode=0o600)
    os.chmod(deployment / "etc" / "sudoers.d", 0o777)
    os.chmod(deployment / "etc" / "udev" / "rules.d", 0o755)

    state = NormalizePermissionsStep().run(make_ctx(), {"execution": {"target_root": str(deployment)}})

    sudoers_d = deployment / "etc" / "sudoers.d"
    rules_d = deployment / "etc" / "udev" / "rules.d"
    assert _mode(sudoers_d) == 0o755
    assert _mode(sudoers_d / "99-plus") == 0o440
    assert _mode(rules_d) == 0o755
    assert _mode(rules_d / "51-gcadapter.rules") == 0o644
    assert sudoers_d.stat().st_uid == os.getuid()
    assert state["execution"]["decisions"]["permissions_corrected"] == {"etc/sudoers.d": 2, "etc/udev/rules.d": 1}


def test_step_skips_missing_dirs(make_ctx, deployment):
    state = NormalizePermissionsStep().run(make_ctx(), {"execution": {"target_root": str(deployment)}})
    assert state["execution"]["decisions"]["permissions_corrected"] == {}


def test_octal_strings_from_yaml_config(make_ctx, deployment):
    write(deployment / "etc" / "sudoers.d" / "99-plus", "policy", mode=0o644)
    ctx = make_ctx({"permissions": {"trees": [{"path": "etc/sudoers.d", "dir_mode": "0750", "file_mode": "0400"}]}})

    NormalizePermissionsStep().run(ctx, {"execution": {"target_root": str(deployment)}})

    assert _mode(deployment / "etc" / "sudoers.d") == 0o750
    assert _mode(deployment / "etc" / "sudoers.d" / "99-plus") == 0o400
