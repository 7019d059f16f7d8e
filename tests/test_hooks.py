import json
from pathlib import Path

from binbake.backends.base import BuildHooks, HookContext, RunRequest
from binbake.backends.inprocess import InProcessRunner
from binbake.hooks import default_hooks, find_license_files
from binbake.models import Platform
from binbake.workspace import create_workspace

LINUX = Platform.parse("x86_64-linux-gnu")


def _request(tmp_path: Path) -> RunRequest:
    workspace = create_workspace(tmp_path / "build", LINUX)
    (workspace.srcdir / "zlib-1.2.11").mkdir()
    (workspace.srcdir / "zlib-1.2.11" / "LICENSE").write_text("zlib license\n", encoding="utf-8")
    (workspace.srcdir / "zlib-1.2.11" / "zlib.c").write_text("int x;\n", encoding="utf-8")
    return RunRequest(
        package="zlib",
        workspace=workspace,
        platform=LINUX,
        script="make",
        log_path=workspace.destdir / "logs" / "zlib.log",
    )


def test_clean_exit_installs_licenses_and_saves_env(tmp_path: Path) -> None:
    request = _request(tmp_path)

    assert InProcessRunner(build=lambda _: 0).run(request, default_hooks())

    metadir = request.workspace.metadir
    installed = request.workspace.destdir / "share" / "licenses" / "zlib" / "LICENSE"
    assert installed.read_text(encoding="utf-8") == "zlib license\n"
    env = json.loads((metadir / "env.json").read_text(encoding="utf-8"))
    assert env["target"] == "x86_64-linux-gnu"
    assert env["prefix"] == str(request.workspace.destdir)
    assert not (metadir / "srcdir").exists()


def test_failure_snapshots_srcdir_and_saves_env(tmp_path: Path) -> None:
    request = _request(tmp_path)

    assert not InProcessRunner(build=lambda _: 2).run(request, default_hooks())

    metadir = request.workspace.metadir
    assert (metadir / "srcdir" / "zlib-1.2.11" / "zlib.c").is_file()
    assert (metadir / "env.json").is_file()
    assert not (request.workspace.destdir / "share").exists()


def test_hooks_fire_exactly_one_side(tmp_path: Path) -> None:
    """Success runs only on_exit hooks and failure only on_error hooks."""
    request = _request(tmp_path)
    fired: list[str] = []
    hooks = BuildHooks(
        on_error=(lambda context: fired.append(f"error:{context.returncode}"),),
        on_exit=(lambda context: fired.append("exit"),),
    )

    hooks.fire(HookContext(request=request, env={}, returncode=0))
    hooks.fire(HookContext(request=request, env={}, returncode=1))

    assert fired == ["exit", "error:1"]


def test_license_search_is_depth_limited(tmp_path: Path) -> None:
    """License files nested too deep are not installed."""
    (tmp_path / "a" / "b" / "c" / "d").mkdir(parents=True)
    (tmp_path / "COPYING").write_text("x", encoding="utf-8")
    (tmp_path / "a" / "b" / "NOTICE").write_text("x", encoding="utf-8")
    (tmp_path / "a" / "b" / "c" / "LICENSE").write_text("x", encoding="utf-8")

    found = find_license_files(tmp_path)

    assert found == [tmp_path / "COPYING", tmp_path / "a" / "b" / "NOTICE"]
