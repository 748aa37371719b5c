import os

from conftest import write
from plus_upgrader.lib.assets import copy_missing, import_assets
from plus_upgrader.steps import ImportAssetsStep


def test_missing_files_are_copied_existing_ones_kept(tmp_path):
    src, dst = tmp_path / "assets", tmp_path / "dest"
    write(src / "themes" / "dark.css", "new theme")
    write(src / "bgm" / "menu.ogg", "ogg")
    write(dst / "themes" / "dark.css", "user edited")

    copied = import_assets(src, dst, uid=os.getuid(), gid=os.getgid())

    assert copied == [dst / "bgm" / "menu.ogg"]
    assert (dst / "themes" / "dark.css").read_text() == "user edited"
    assert (dst / "bgm" / "menu.ogg").read_text() == "ogg"


def test_absent_or_empty_source_is_a_no_op(tmp_path):
    dst = tmp_path / "dest"
    assert import_assets(tmp_path / "nope", dst, uid=os.getuid(), gid=os.getgid()) == []

    (tmp_path / "empty").mkdir()
    assert import_assets(tmp_path / "empty", dst, uid=os.getuid(), gid=os.getgid()) == []
    assert not dst.exists()


def test_copy_missing_dry_run_reports_without_writing(tmp_path):
    src, dst = tmp_path / "assets", tmp_path / "dest"
    write(src / "a.png", "png")

    assert copy_missing(src, dst, dry_run=True) == [dst / "a.png"]
    assert not dst.exists()


def test_step_imports_into_user_home(make_ctx, kit, deployment):
    write(kit / "assets" / "themes" / "retro.css", "css")
    state = ImportAssetsStep().run(make_ctx(), {"execution": {"target_root": str(deployment)}})

    dest = deployment / "home" / "gamer" / ".local" / "share" / "kazeta-plus"
    assert (dest / "themes" / "retro.css").read_text() == "css"
    assert dest.stat().st_uid == os.getuid()
    assert state["execution"]["decisions"]["assets"] == {"dest": str(dest), "copied": 1}

    again = ImportAssetsStep().run(make_ctx(), {"execution": {"target_root": str(deployment)}})
    assert again["execution"]["decisions"]["assets"]["copied"] == 0
