from __future__ import annotations

import logging
import shutil
from pathlib import Path

import pytest
import yaml
from conftest import FakeExecutor, failing
from typer.testing import CliRunner

import src.orchestrator.cli as cli_module

runner = CliRunner()

BASE_CONFIG = Path(__file__).resolve().parents[1] / "configs" / "base.yaml"


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "build.yaml"
    path.write_text(
        yaml.safe_dump({"project": {"product_name": "CursorClone"}, "timeouts": {"default": 0}}),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def use_executor(monkeypatch):
    def _use(executor: FakeExecutor) -> FakeExecutor:
        monkeypatch.setattr(cli_module, "make_executor", lambda: executor)
        return executor

    return _use


@pytest.fixture
def detach_log_files():
    logger = logging.getLogger("orchestrator")
    before = list(logger.handlers)
    yield
    for handler in [h for h in logger.handlers if h not in before]:
        logger.removeHandler(handler)
        handler.close()


def _invoke(*args, checkout, config_file):
    return runner.invoke(
        cli_module.app, [*args, "--root", str(checkout), "--config", str(config_file)]
    )


def test_no_command_shows_help():
    result = runner.invoke(cli_module.app, [])
    assert result.exit_code == 0
    assert "Usage" in result.output
    assert "all" in result.output


def test_help_command():
    result = runner.invoke(cli_module.app, ["help"])
    assert result.exit_code == 0
    assert "package" in result.output


def test_list_prints_pipeline_order():
    result = runner.invoke(cli_module.app, ["list"])
    assert result.exit_code == 0
    lines = [line[2:].split(":")[0] for line in result.output.splitlines() if line.startswith("- ")]
    assert lines[:6] == ["sync", "install", "build", "package", "archive", "validate"]
    assert "test" in lines


def test_all_linux_arm64_succeeds(checkout, config_file, use_executor):
    executor = use_executor(FakeExecutor())
    result = _invoke("all", "--platform", "linux", "--arch", "arm64", checkout=checkout, config_file=config_file)
    assert result.exit_code == 0, result.output
    assert executor.command_lines[0] == "git fetch upstream"
    assert "npm run gulp -- vscode-linux-arm64" in executor.command_lines
    assert (checkout / "releases" / "CursorClone-1.2.3-linux-arm64.tar.gz").exists()


def test_skip_sync_never_spawns_git(checkout, config_file, use_executor):
    executor = use_executor(FakeExecutor())
    result = _invoke(
        "all", "--platform", "linux", "--arch", "arm64", "--skip-sync",
        checkout=checkout, config_file=config_file,
    )
    assert result.exit_code == 0, result.output
    assert executor.command_lines[0] == "npm install"
    assert not any(line.startswith("git") for line in executor.command_lines)


def test_failed_build_exits_one_and_stops(checkout, config_file, use_executor):
    executor = use_executor(FakeExecutor({"npm run compile": failing(2, "tsc error")}))
    result = _invoke("all", "--platform", "linux", "--arch", "arm64", checkout=checkout, config_file=config_file)
    assert result.exit_code == 1
    assert not any("gulp" in line for line in executor.command_lines)
    assert not (checkout / "releases").exists()


def test_invalid_arch_fails_before_any_command(checkout, config_file, use_executor):
    executor = use_executor(FakeExecutor())
    result = _invoke("all", "--platform", "linux", "--arch", "ia32", checkout=checkout, config_file=config_file)
    assert result.exit_code == 1
    assert executor.calls == []


def test_missing_explicit_config_is_fatal(checkout, tmp_path, use_executor):
    executor = use_executor(FakeExecutor())
    result = _invoke("install", checkout=checkout, config_file=tmp_path / "nope.yaml")
    assert result.exit_code == 1
    assert executor.calls == []


def test_release_tags_and_pushes_after_success(checkout, config_file, use_executor):
    executor = use_executor(FakeExecutor())
    result = _invoke(
        "all", "--platform", "linux", "--arch", "arm64", "--skip-sync", "--release",
        checkout=checkout, config_file=config_file,
    )
    assert result.exit_code == 0, result.output
    assert executor.command_lines[-2:] == [
        "git tag -a v1.2.3 -m Release 1.2.3",
        "git push origin main --tags",
    ]


def test_release_skipped_when_pipeline_fails(checkout, config_file, use_executor):
    executor = use_executor(FakeExecutor({"npm install": failing()}))
    result = _invoke("all", "--skip-sync", "--release", "--platform", "linux", "--arch", "arm64",
                     checkout=checkout, config_file=config_file)
    assert result.exit_code == 1
    assert not any(line.startswith("git") for line in executor.command_lines)


def test_resume_from_package(checkout, config_file, use_executor):
    executor = use_executor(FakeExecutor())
    result = _invoke(
        "all", "--platform", "linux", "--arch", "arm64", "--from-step", "package",
        checkout=checkout, config_file=config_file,
    )
    assert result.exit_code == 0, result.output
    assert executor.command_lines[0] == "npm run gulp -- vscode-linux-arm64"


def test_unknown_from_step_is_fatal(checkout, config_file, use_executor):
    executor = use_executor(FakeExecutor())
    result = _invoke("all", "--from-step", "deploy", checkout=checkout, config_file=config_file)
    assert result.exit_code == 1
    assert executor.calls == []


def test_single_step_command(checkout, config_file, use_executor):
    executor = use_executor(FakeExecutor())
    result = _invoke("test", checkout=checkout, config_file=config_file)
    assert result.exit_code == 0, result.output
    assert executor.command_lines == ["npm test"]


def test_validate_command_fails_on_branding_mismatch(checkout, config_file, use_executor):
    use_executor(FakeExecutor())
    (checkout / "README.md").write_text("# Code - OSS\n", encoding="utf-8")
    result = _invoke("validate", checkout=checkout, config_file=config_file)
    assert result.exit_code == 1


def test_archive_before_package_fails(tmp_path, config_file, use_executor):
    root = tmp_path / "bare"
    root.mkdir()
    (root / "package.json").write_text('{"version": "0.1.0"}', encoding="utf-8")
    use_executor(FakeExecutor())
    result = _invoke("archive", "--platform", "linux", "--arch", "x64", checkout=root, config_file=config_file)
    assert result.exit_code == 1


def test_doctor_exit_code_reflects_required_checks(checkout, config_file, use_executor):
    use_executor(FakeExecutor())
    result = _invoke("doctor", checkout=checkout, config_file=config_file)
    # tsconfig.json, gulpfile.js and node_modules are absent from the fixture checkout
    assert result.exit_code == 1
    for name in ("tsconfig.json", "gulpfile.js"):
        (checkout / name).write_text("{}", encoding="utf-8")
    (checkout / "node_modules").mkdir()
    assert _invoke("doctor", checkout=checkout, config_file=config_file).exit_code == 0


def test_verbose_streams_every_command(checkout, config_file, use_executor):
    executor = use_executor(FakeExecutor())
    result = _invoke(
        "all", "--platform", "linux", "--arch", "arm64", "--verbose",
        checkout=checkout, config_file=config_file,
    )
    assert result.exit_code == 0
    assert executor.streams and all(executor.streams)


def test_output_is_captured_without_verbose(checkout, config_file, use_executor):
    executor = use_executor(FakeExecutor())
    result = _invoke("all", "--platform", "linux", "--arch", "arm64", checkout=checkout, config_file=config_file)
    assert result.exit_code == 0
    assert executor.streams and not any(executor.streams)


def test_validate_with_default_config_fails_on_unbuilt_checkout(
    checkout, use_executor, detach_log_files
):
    shutil.rmtree(checkout / ".build")
    use_executor(FakeExecutor())
    result = _invoke("validate", "--platform", "linux", "--arch", "x64", checkout=checkout, config_file=BASE_CONFIG)
    assert result.exit_code == 1
    assert not (checkout / ".build").exists()
    assert (checkout / "logs" / "cursorclone-build.log").exists()


def test_validate_with_default_config_passes_on_built_checkout(
    checkout, use_executor, detach_log_files
):
    use_executor(FakeExecutor())
    result = _invoke("validate", "--platform", "linux", "--arch", "x64", checkout=checkout, config_file=BASE_CONFIG)
    assert result.exit_code == 0


def test_rejected_target_leaves_checkout_untouched(tmp_path, use_executor, detach_log_files):
    root = tmp_path / "checkout"
    root.mkdir()
    executor = use_executor(FakeExecutor())
    result = _invoke("all", "--platform", "linux", "--arch", "ia32", checkout=root, config_file=BASE_CONFIG)
    assert result.exit_code == 1
    assert list(root.iterdir()) == []
    assert executor.calls == []


def test_unwritable_log_file_is_config_error(checkout, tmp_path, use_executor, monkeypatch):
    config = tmp_path / "with-log.yaml"
    config.write_text(yaml.safe_dump({"logging": {"file": "logs/build.log"}}), encoding="utf-8")

    def refuse(path):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr(cli_module, "attach_file_handler", refuse)
    executor = use_executor(FakeExecutor())
    for command in ("build", "doctor"):
        result = _invoke(command, "--platform", "linux", "--arch", "x64", checkout=checkout, config_file=config)
        assert result.exit_code == 1
        assert not isinstance(result.exception, PermissionError)
    assert executor.calls == []
