import io
import subprocess
from pathlib import Path

import pytest

from scaffolder import cli, install
from scaffolder.install import InstallError, InstallResult


@pytest.fixture
def recorded(monkeypatch: pytest.MonkeyPatch) -> dict:
    """Replace git/npm invocations with recorders."""
    calls: dict = {"run": [], "install": []}

    def fake_run(cmd, *, cwd, env=None):
        calls["run"].append((cmd, Path(cwd)))
        if cmd[:2] == ["git", "clone"]:
            dest = Path(cmd[-1])
            (dest / ".git").mkdir(parents=True)
            (dest / "layout.html.jinja").write_text("{{ title }}\n", encoding="utf-8")

    def fake_install(cwd, options, **kwargs):
        calls["install"].append((Path(cwd), options, kwargs))
        return InstallResult(expected=(), finished=(), postinstall_started=False)

    monkeypatch.setattr(cli, "_run", fake_run)
    monkeypatch.setattr(cli, "install_with_progress", fake_install)
    return calls


def test_new_runs_all_steps(tmp_path: Path, recorded: dict, capsys: pytest.CaptureFixture[str]) -> None:
    dest = tmp_path.resolve() / "myapp"
    rc = cli.main(["new", "myapp", str(dest), "--no-color", "--bar-length", "30"])

    assert rc == 0
    cmds = [cmd for cmd, _cwd in recorded["run"]]
    assert cmds[0] == ["git", "clone", "--depth=1", cli.DEFAULT_REPO, str(dest)]
    assert cmds[1:] == [
        ["git", "init"],
        ["git", "add", "."],
        ["git", "commit", "-m", "Initial commit"],
        ["npm", "dedupe"],
    ]
    assert not (dest / ".git").exists()
    assert (dest / "layout.html.jinja").read_text(encoding="utf-8") == "{{ title }}\n"

    cwd, options, kwargs = recorded["install"][0]
    assert cwd == dest
    assert options.bar_length == 30
    assert (options.subtask_index, options.total_subtasks) == (4, 6)
    assert kwargs["color"] is False

    out = capsys.readouterr().out
    assert "1/6. Cloning repository..." in out
    assert "3/6. Reinitialising repository..." in out


def test_new_keep_git_and_no_dedupe(tmp_path: Path, recorded: dict, capsys: pytest.CaptureFixture[str]) -> None:
    dest = tmp_path.resolve() / "myapp"
    rc = cli.main(["new", "myapp", str(dest), "--keep-git", "--no-dedupe", "--verbose"])

    assert rc == 0
    assert [cmd for cmd, _cwd in recorded["run"]] == [["git", "clone", "--depth=1", cli.DEFAULT_REPO, str(dest)]]
    assert (dest / ".git").exists()
    assert recorded["install"][0][2]["verbose"] is True
    assert "3/6. Using template repository..." in capsys.readouterr().out


def test_new_refuses_existing_folder(tmp_path: Path, recorded: dict, capsys: pytest.CaptureFixture[str]) -> None:
    rc = cli.main(["new", "myapp", str(tmp_path)])

    assert rc == 1
    assert recorded["run"] == []
    assert "already exists" in capsys.readouterr().err


def test_install_command(tmp_path: Path, recorded: dict) -> None:
    config = tmp_path / "options.yml"
    config.write_text("install:\n  app_module: my-app\n  bar_length: 12\n", encoding="utf-8")

    rc = cli.main(["install", str(tmp_path), "--config", str(config), "--bar-length", "20"])

    assert rc == 0
    cwd, options, _kwargs = recorded["install"][0]
    assert cwd == tmp_path.resolve()
    assert options.app_module == "my-app"
    assert options.bar_length == 20
    assert options.total_subtasks == 0


def test_install_failure_is_reported(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    def failing_install(cwd, options, **kwargs):
        raise InstallError(1, "npm ERR! network\n")

    monkeypatch.setattr(cli, "install_with_progress", failing_install)

    assert cli.main(["install", str(tmp_path)]) == 1
    err = capsys.readouterr().err
    assert "exit code 1" in err
    assert "npm ERR! network" in err


def test_invalid_bar_length(tmp_path: Path, recorded: dict, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["install", str(tmp_path), "--bar-length", "0"]) == 1
    assert "bar_length" in capsys.readouterr().err


def test_new_into_missing_parent_clones_from_cwd(tmp_path: Path, recorded: dict) -> None:
    dest = tmp_path.resolve() / "missing" / "myapp"
    assert cli.main(["new", "myapp", str(dest), "--no-dedupe"]) == 0

    cmd, cwd = recorded["run"][0]
    assert cmd[-1] == str(dest)
    assert cwd == Path.cwd()


def test_run_reports_command_output_on_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_run(cmd, **kwargs):
        raise subprocess.CalledProcessError(128, cmd, output="fatal: repository not found\n")

    monkeypatch.setattr(cli.subprocess, "run", failing_run)
    with pytest.raises(cli.CLIError) as exc_info:
        cli._run(["git", "clone", "nope"], cwd=tmp_path)

    assert "Command failed: git clone nope" in str(exc_info.value)
    assert "fatal: repository not found" in str(exc_info.value)


def test_run_missing_executable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def missing(cmd, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", cmd[0])

    monkeypatch.setattr(cli.subprocess, "run", missing)
    with pytest.raises(cli.CLIError, match="Command not found: git"):
        cli._run(["git", "init"], cwd=tmp_path)


def test_run_missing_working_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def missing(cmd, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", kwargs["cwd"])

    monkeypatch.setattr(cli.subprocess, "run", missing)
    with pytest.raises(cli.CLIError, match="Working directory not found"):
        cli._run(["git", "init"], cwd=tmp_path / "gone")


def test_verbose_install_failure_is_reported(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    class FailingPopen:
        def __init__(self, cmd, **kwargs) -> None:
            self.stdout = io.BytesIO(b"npm ERR! code ENOTFOUND\n")

        def wait(self, timeout=None) -> int:
            return 1

    def fake_run(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 0, stdout=f"{tmp_path}\n")

    def install_with_fakes(cwd, options, **kwargs):
        return install.install_with_progress(cwd, options, popen=FailingPopen, run=fake_run, **kwargs)

    monkeypatch.setattr(cli, "install_with_progress", install_with_fakes)

    assert cli.main(["install", str(tmp_path), "--verbose", "--no-color"]) == 1
    captured = capsys.readouterr()
    assert "[NPM] npm ERR! code ENOTFOUND" in captured.out
    assert "exit code 1" in captured.err
    assert "npm ERR! code ENOTFOUND" in captured.err


def test_invalid_log_level(tmp_path: Path, recorded: dict, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["--log-level", "loud", "install", str(tmp_path)]) == 1
    assert "Unknown log level: LOUD" in capsys.readouterr().err
    assert recorded["install"] == []
