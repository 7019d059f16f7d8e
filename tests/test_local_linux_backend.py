import json
import shutil
import sys
from pathlib import Path

import pytest

from binbake.backends.base import BuildHooks, RunRequest
from binbake.backends.local_linux import LocalLinuxRunner, read_env_dump
from binbake.errors import BuildFailure
from binbake.hooks import save_env
from binbake.models import Platform
from binbake.workspace import create_workspace

LINUX = Platform.parse("x86_64-linux-gnu")


def _request(tmp_path: Path, script: str, *, verbose: bool = False) -> RunRequest:
    workspace = create_workspace(tmp_path / "build", LINUX)
    return RunRequest(
        package="hello",
        workspace=workspace,
        platform=LINUX,
        script=script,
        log_path=workspace.destdir / "logs" / "hello.log",
        verbose=verbose,
    )


def test_local_runner_fails_on_non_linux_host(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """The native runner refuses to run on hosts that are not Linux."""
    monkeypatch.setattr("binbake.backends.local_linux.sys.platform", "darwin")
    monkeypatch.setattr("binbake.backends.local_linux.shutil.which", lambda _: "/bin/bash")

    with pytest.raises(BuildFailure) as excinfo:
        LocalLinuxRunner().run(_request(tmp_path, "true"), BuildHooks())

    assert "Linux host" in str(excinfo.value)
    assert excinfo.value.context["platform"] == "x86_64-linux-gnu"


def test_local_runner_fails_when_shell_missing(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr("binbake.backends.local_linux.sys.platform", "linux")
    monkeypatch.setattr("binbake.backends.local_linux.shutil.which", lambda _: None)

    with pytest.raises(BuildFailure) as excinfo:
        LocalLinuxRunner().run(_request(tmp_path, "true"), BuildHooks())

    assert "bash" in str(excinfo.value)
    assert excinfo.value.hint is not None


linux_only = pytest.mark.skipif(
    not sys.platform.startswith("linux") or shutil.which("bash") is None,
    reason="Local runner needs a Linux host with bash.",
)


@linux_only
def test_local_runner_logs_output_and_history(tmp_path: Path) -> None:
    """Script output goes to the log and xtrace to metadir/history."""
    request = _request(
        tmp_path,
        'mkdir -p "$bindir"\necho "building for $target"\ntouch "$bindir/hello"',
    )
    exits: list[int] = []

    ok = LocalLinuxRunner().run(
        request, BuildHooks(on_exit=(lambda context: exits.append(context.returncode),))
    )

    assert ok
    assert exits == [0]
    assert "building for x86_64-linux-gnu" in request.log_path.read_text(encoding="utf-8")
    history = (request.workspace.metadir / "history").read_text(encoding="utf-8")
    assert "touch" in history
    assert (request.workspace.destdir / "bin" / "hello").is_file()


@linux_only
def test_local_runner_stops_at_first_failing_command(tmp_path: Path) -> None:
    """`set -e` aborts the script at the first failing command and fires on_error."""
    request = _request(tmp_path, 'false\ntouch "$prefix/unreachable"')
    errors: list[int] = []

    ok = LocalLinuxRunner().run(
        request, BuildHooks(on_error=(lambda context: errors.append(context.returncode),))
    )

    assert not ok
    assert errors == [1]
    assert not (request.workspace.destdir / "unreachable").exists()


@linux_only
def test_saved_environment_is_the_one_the_script_ended_with(tmp_path: Path) -> None:
    """Variables exported by a failing script reach env.json for postmortem use."""
    request = _request(tmp_path, "export CONFIGURED_FLAGS=--enable-foo\nfalse")

    ok = LocalLinuxRunner().run(request, BuildHooks(on_error=(save_env,)))

    assert not ok
    saved = json.loads((request.workspace.metadir / "env.json").read_text(encoding="utf-8"))
    assert saved["CONFIGURED_FLAGS"] == "--enable-foo"
    assert saved["target"] == "x86_64-linux-gnu"
    assert "BASH_XTRACEFD" not in saved


def test_env_dump_parsing_handles_newlines_and_missing_dump(tmp_path: Path) -> None:
    dump = tmp_path / "final-env"
    dump.write_bytes(b"A=1\0MULTI=line one\nline two\0EMPTY=\0BASH_XTRACEFD=7\0")

    assert read_env_dump(dump, fallback={}) == {
        "A": "1",
        "MULTI": "line one\nline two",
        "EMPTY": "",
    }
    assert read_env_dump(tmp_path / "absent", fallback={"B": "2"}) == {"B": "2"}
