from pathlib import Path

import pytest

from plus_upgrader.errors import PreconditionFailed, TargetNotFound
from plus_upgrader.lib.target import DeploymentTarget, locate_deployment, target_from_state


def test_locate_returns_first_match_in_pattern_order(tmp_path):
    live = tmp_path / "frzr_root" / "deployments"
    media = tmp_path / "media" / "sd" / "frzr_root" / "deployments"
    (live / "kazeta-1.2").mkdir(parents=True)
    (live / "kazeta-1.1").mkdir(parents=True)
    (media / "kazeta-0.9").mkdir(parents=True)

    target = locate_deployment([str(live / "kazeta-*"), str(tmp_path / "media" / "*" / "frzr_root" / "deployments" / "kazeta-*")])

    assert target.root == live / "kazeta-1.1"


def test_locate_falls_back_to_removable_media(tmp_path):
    media = tmp_path / "media" / "sd" / "frzr_root" / "deployments" / "kazeta-0.9"
    media.mkdir(parents=True)

    target = locate_deployment([str(tmp_path / "nothing" / "kazeta-*"), str(tmp_path / "media" / "*" / "frzr_root" / "deployments" / "kazeta-*")])

    assert target.root == media


def test_locate_ignores_files_matching_the_pattern(tmp_path):
    (tmp_path / "kazeta-notes").write_text("x", encoding="utf-8")
    with pytest.raises(TargetNotFound):
        locate_deployment([str(tmp_path / "kazeta-*")])


def test_target_not_found_is_a_precondition_failure(tmp_path):
    with pytest.raises(PreconditionFailed) as exc:
        locate_deployment([str(tmp_path / "kazeta-*")])
    assert exc.value.exit_code == 2
    assert "kazeta-*" in str(exc.value)


def test_deployment_target_subtrees():
    t = DeploymentTarget(root=Path("/d"))
    assert t.etc == Path("/d/etc")
    assert t.usr_bin == Path("/d/usr/bin")
    assert t.usr_share == Path("/d/usr/share")
    assert t.home("gamer") == Path("/d/home/gamer")
    assert t.path("/etc/sudoers") == Path("/d/etc/sudoers")


def test_target_from_state_requires_preflight():
    with pytest.raises(PreconditionFailed):
        target_from_state({"execution": {}})
    assert target_from_state({"execution": {"target_root": "/d"}}).root == Path("/d")
