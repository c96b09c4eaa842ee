"""CLI 测试 - CliRunner + 假注册表"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from toynpm.cli import main
from toynpm.core.config import Config, set_config
from toynpm.utils.logger import reset_logging


@pytest.fixture(autouse=True)
def _isolate(monkeypatch: pytest.MonkeyPatch, fake_registry) -> None:  # type: ignore[no-untyped-def]
    """所有命令使用假注册表，测试结束后恢复全局配置与日志"""
    monkeypatch.setattr(
        "toynpm.core.registry.RegistryClient", lambda *a, **kw: fake_registry,
    )
    yield
    set_config(Config())
    reset_logging()


def _invoke(root: Path, *args: str):  # type: ignore[no-untyped-def]
    runner = CliRunner()
    return runner.invoke(
        main, ["--root", str(root), "--config", str(root / "missing.yml"), *args],
    )


def _manifest(root: Path) -> dict:
    return json.loads((root / "toy-package.json").read_text(encoding="utf-8"))


class TestInit:
    def test_init_twice(self, tmp_path: Path) -> None:
        r1 = _invoke(tmp_path, "init")
        assert r1.exit_code == 0
        assert "已创建" in r1.output
        first = (tmp_path / "toy-package.json").read_bytes()

        r2 = _invoke(tmp_path, "init")
        assert r2.exit_code == 0
        assert "已存在" in r2.output
        assert (tmp_path / "toy-package.json").read_bytes() == first
        assert _manifest(tmp_path)["name"] == "toy-project"


class TestInstall:
    def test_install_one(self, tmp_path: Path) -> None:
        result = _invoke(tmp_path, "install", "left-pad")
        assert result.exit_code == 0, result.output
        assert "left-pad@1.3.0" in result.output
        assert _manifest(tmp_path)["dependencies"] == {"left-pad": "latest"}
        assert (tmp_path / "toy_node_modules" / "left-pad" / "index.js").is_file()

    def test_install_version_save_dev(self, tmp_path: Path) -> None:
        result = _invoke(tmp_path, "install", "left-pad", "1.1.0", "--save-dev")
        assert result.exit_code == 0, result.output
        assert _manifest(tmp_path)["devDependencies"] == {"left-pad": "1.1.0"}

    def test_install_failure_exits_nonzero(self, tmp_path: Path) -> None:
        result = _invoke(tmp_path, "install", "left-pad", "9.9.9")
        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output
        assert not (tmp_path / "toy-package.json").exists()

    def test_no_verb_installs_manifest(self, tmp_path: Path, fake_registry) -> None:  # type: ignore[no-untyped-def]
        fake_registry.publish("is-odd", "3.0.1")
        _invoke(tmp_path, "init")
        manifest = _manifest(tmp_path)
        manifest["dependencies"] = {"left-pad": "1.1.0"}
        manifest["devDependencies"] = {"is-odd": "latest"}
        (tmp_path / "toy-package.json").write_text(json.dumps(manifest))

        result = _invoke(tmp_path)

        assert result.exit_code == 0, result.output
        lock = json.loads((tmp_path / "toy-package-lock.json").read_text())
        assert lock["left-pad"]["version"] == "1.1.0"
        assert lock["is-odd"]["version"] == "3.0.1"

    def test_no_verb_partial_failure(self, tmp_path: Path) -> None:
        (tmp_path / "toy-package.json").write_text(json.dumps({
            "name": "x", "dependencies": {"left-pad": "latest", "ghost": "latest"},
            "devDependencies": {},
        }))
        result = _invoke(tmp_path)
        assert result.exit_code == 1
        assert "1/2" in result.output
        assert (tmp_path / "toy_node_modules" / "left-pad").is_dir()

    def test_no_verb_without_manifest(self, tmp_path: Path) -> None:
        result = _invoke(tmp_path)
        assert result.exit_code == 0
        assert not (tmp_path / "toy-package.json").exists()


class TestUninstall:
    def test_uninstall_one(self, tmp_path: Path) -> None:
        _invoke(tmp_path, "install", "left-pad")
        result = _invoke(tmp_path, "uninstall", "left-pad")
        assert result.exit_code == 0
        assert "已卸载 left-pad" in result.output
        assert _manifest(tmp_path)["dependencies"] == {}

    def test_uninstall_missing(self, tmp_path: Path) -> None:
        result = _invoke(tmp_path, "uninstall", "left-pad", "--save-dev")
        assert result.exit_code == 0
        assert "未安装" in result.output

    def test_uninstall_all(self, tmp_path: Path) -> None:
        _invoke(tmp_path, "install", "left-pad")
        result = _invoke(tmp_path, "uninstall")
        assert result.exit_code == 0, result.output
        assert not (tmp_path / "toy_node_modules" / "left-pad").exists()

    def test_invalid_name(self, tmp_path: Path) -> None:
        result = _invoke(tmp_path, "uninstall", "../etc")
        assert result.exit_code == 1
        assert "VALIDATION_ERROR" in result.output


class TestList:
    def test_list(self, tmp_path: Path) -> None:
        _invoke(tmp_path, "install", "left-pad")
        _invoke(tmp_path, "init")
        manifest = _manifest(tmp_path)
        manifest["devDependencies"]["jest"] = "latest"
        (tmp_path / "toy-package.json").write_text(json.dumps(manifest))

        result = _invoke(tmp_path, "list")

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert any("left-pad" in ln and "locked=1.3.0" in ln and "installed" in ln for ln in lines)
        assert any("jest" in ln and "dev" in ln and "missing" in ln for ln in lines)

    def test_list_without_manifest(self, tmp_path: Path) -> None:
        result = _invoke(tmp_path, "list")
        assert result.exit_code == 0
        assert "不存在" in result.output
