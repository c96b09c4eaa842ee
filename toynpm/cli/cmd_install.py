"""CLI - 安装/卸载命令"""

from __future__ import annotations

import click

from toynpm.cli import _fail, _installer, _report
from toynpm.core.exceptions import ToyNpmError


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(uninstall)


@click.command()
@click.argument("name", required=False)
@click.argument("version", required=False)
@click.option("--save-dev", "-D", "save_dev", is_flag=True, help="记录到 devDependencies")
def install(name: str | None, version: str | None, save_dev: bool) -> None:
    """安装指定包（不指定包名则按清单安装全部）"""
    inst = _installer()
    try:
        if not name:
            _report("安装", inst.install_all())
            return
        result = inst.install_one(name, version, is_dev=save_dev)
    except (ToyNpmError, OSError) as e:
        raise _fail(e) from e
    click.echo(f"已安装 {name}@{result.resolved_version}")


@click.command()
@click.argument("name", required=False)
@click.option("--save-dev", "-D", "save_dev", is_flag=True, help="兼容参数，卸载总是同时清理两个分组")
def uninstall(name: str | None, save_dev: bool) -> None:
    """卸载指定包（不指定包名则卸载清单中全部依赖）"""
    inst = _installer()
    try:
        if not name:
            _report("卸载", inst.uninstall_all())
            return
        removed = inst.uninstall_one(name)
    except (ToyNpmError, OSError) as e:
        raise _fail(e) from e
    click.echo(f"已卸载 {name}" if removed else f"包 {name} 未安装")
