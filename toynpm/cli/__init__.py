"""toy-npm 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
不带子命令时按清单安装全部依赖。
"""

from __future__ import annotations

import os

import click

from toynpm import __version__
from toynpm.core.config import DEFAULT_CONFIG_FILE, Config, get_config, set_config
from toynpm.core.exceptions import ToyNpmError
from toynpm.core.installer import Installer
from toynpm.core.models import InstallOutcome
from toynpm.utils.logger import setup_logging


def _installer() -> Installer:
    """基于当前全局配置构造编排器"""
    return Installer.from_config(get_config())


def _report(action: str, outcomes: list[InstallOutcome]) -> None:
    """输出批量结果，有失败时以非零码退出"""
    failed = [o for o in outcomes if not o.ok]
    for o in outcomes:
        if o.ok:
            ver = f"@{o.resolved.resolved_version}" if o.resolved else ""
            click.echo(f"  {o.status:12s} {o.name}{ver}")
        else:
            click.echo(f"  {'failed':12s} {o.name} [{o.error_kind}] {o.message}", err=True)
    if failed:
        raise click.ClickException(f"{action}失败: {len(failed)}/{len(outcomes)} 个包")


def _fail(exc: Exception) -> click.ClickException:
    code = getattr(exc, "code", "IO_ERROR")
    return click.ClickException(f"[{code}] {exc}")


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.option("--root", default=None, type=click.Path(file_okay=False), help="项目根目录")
@click.option("--config", "-c", "config_path", default=DEFAULT_CONFIG_FILE, help="配置文件路径")
@click.pass_context
def main(ctx: click.Context, root: str | None, config_path: str) -> None:
    """toy-npm - 极简 npm 包管理客户端"""
    setup_logging(
        level=os.getenv("TOYNPM_LOG_LEVEL", "INFO"),
        json_output=os.getenv("TOYNPM_LOG_JSON", "") == "1",
    )
    try:
        cfg = Config.from_file(config_path)
    except ToyNpmError as e:
        raise _fail(e) from e
    if root:
        cfg.root_dir = root
    set_config(cfg)

    if ctx.invoked_subcommand is None:
        try:
            outcomes = _installer().install_all()
        except ToyNpmError as e:
            raise _fail(e) from e
        _report("安装", outcomes)


# 注册各领域子命令
from toynpm.cli.cmd_install import register as _reg_install  # noqa: E402
from toynpm.cli.cmd_manifest import register as _reg_manifest  # noqa: E402

_reg_install(main)
_reg_manifest(main)
