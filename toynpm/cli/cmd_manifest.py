"""CLI - 清单初始化与查询"""

from __future__ import annotations

import click

from toynpm.cli import _fail, _installer
from toynpm.core.exceptions import ToyNpmError


def register(group: click.Group) -> None:
    group.add_command(init)
    group.add_command(list_deps)


@click.command()
def init() -> None:
    """创建 toy-package.json（已存在时不修改）"""
    inst = _installer()
    if inst.init():
        click.echo(f"已创建 {inst.manifest.path.name}")
    else:
        click.echo(f"{inst.manifest.path.name} 已存在。")


@click.command(name="list")
def list_deps() -> None:
    """列出清单中的依赖及其锁定版本、安装状态（不访问网络）"""
    inst = _installer()
    if not inst.manifest.exists():
        click.echo(f"{inst.manifest.path.name} 不存在。")
        return
    try:
        refs = inst.manifest.load().refs()
        locked = inst.lock.load()
    except ToyNpmError as e:
        raise _fail(e) from e
    if not refs:
        click.echo("没有已声明的依赖。")
        return
    for ref in refs:
        entry = locked.get(ref.name) or {}
        installed = (inst.modules_dir / ref.name).is_dir()
        click.echo(
            f"  {ref.name:24s} {ref.requested_version:12s} "
            f"locked={entry.get('version', '-'):10s} "
            f"{'dev' if ref.is_dev else 'prod':4s} "
            f"{'installed' if installed else 'missing'}"
        )
