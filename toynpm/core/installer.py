"""安装/卸载编排器

单包安装流水线:
  解析版本 → 确保模块目录 → 下载 <name>-<version>.tgz → 解压并删除 tarball
  → 更新清单（写入请求的版本） → 二次查询注册表并写入锁文件

批量安装按 min(ceil(N/2), max_concurrency) 的并发度在线程池中执行，
每个包独立完成或失败，全部结束后统一汇总（不快速失败）。
失败不回滚：模块目录中可能留下不完整的解压内容或未删除的 tarball，
由下一次对同名包的 install/uninstall 修复。

用法:
    from toynpm.core.installer import Installer

    inst = Installer.from_config(get_config())
    inst.install_one("left-pad")
    inst.install_all()
    inst.uninstall_one("left-pad")
"""

from __future__ import annotations

import logging
import math
import re
import shutil
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Protocol

from toynpm.core import archive
from toynpm.core.exceptions import (
    ManifestMissingError,
    ToyNpmError,
    ValidationError,
    VersionNotFoundError,
)
from toynpm.core.manifest import LockStore, ManifestStore
from toynpm.core.models import (
    LATEST,
    InstallOutcome,
    InstallState,
    PackageMetadata,
    PackageRef,
    ResolvedInstall,
    VersionInfo,
    summarize_outcomes,
)

if TYPE_CHECKING:
    from toynpm.core.config import Config

logger = logging.getLogger(__name__)

# 普通包名或 @scope/name，不允许 .. 等路径穿越片段
_SAFE_NAME_RE = re.compile(
    r"^(?:@[A-Za-z0-9][A-Za-z0-9._~-]*/)?[A-Za-z0-9][A-Za-z0-9._~-]*$"
)


class Registry(Protocol):
    """编排器依赖的注册表接口（RegistryClient 或测试替身）"""

    def fetch_metadata(self, name: str) -> PackageMetadata: ...

    def fetch_version(self, name: str, version: str) -> VersionInfo: ...

    def download(self, url: str, dest: Path) -> Path: ...


def concurrency_limit(total: int, cap: int = 8) -> int:
    """批量安装并发度: min(ceil(total / 2), cap)，至少为 1"""
    return max(1, min(math.ceil(total / 2), cap))


def validate_package_name(name: str) -> None:
    if not name or not _SAFE_NAME_RE.match(name) or ".." in name:
        raise ValidationError(f"包名包含非法字符: {name!r}")


class _Pipeline:
    """单包流水线的当前状态，失败时用于定位卡在哪一步"""

    def __init__(self, name: str) -> None:
        self.name = name
        self.state = InstallState.PENDING

    def advance(self, state: InstallState) -> None:
        self.state = state
        logger.debug("[%s] -> %s", self.name, state.value)


class Installer:
    """安装/卸载编排器

    modules_dir 下每个包一个子目录，目录是否存在是 "已安装" 的唯一依据，
    清单与锁文件只是描述它的元数据。
    """

    def __init__(
        self,
        registry: Registry,
        manifest: ManifestStore,
        lock: LockStore,
        modules_dir: Path,
        max_concurrency: int = 8,
        project_name: str = "toy-project",
    ) -> None:
        self.registry = registry
        self.manifest = manifest
        self.lock = lock
        self.modules_dir = modules_dir
        self.max_concurrency = max(1, max_concurrency)
        self.project_name = project_name

    @classmethod
    def from_config(cls, cfg: Config, registry: Registry | None = None) -> Installer:
        if registry is None:
            from toynpm.core.registry import RegistryClient
            registry = RegistryClient(cfg.registry_url, timeout=cfg.request_timeout)
        return cls(
            registry=registry,
            manifest=ManifestStore(cfg.manifest_path, project_name=cfg.fallback_project_name),
            lock=LockStore(cfg.lock_path),
            modules_dir=cfg.modules_path,
            max_concurrency=cfg.max_concurrency,
            project_name=cfg.project_name,
        )

    def module_path(self, name: str) -> Path:
        validate_package_name(name)
        return self.modules_dir / name

    # ------------------------------------------------------------------
    # 安装
    # ------------------------------------------------------------------

    def install_one(
        self, name: str, version: str | None = None, is_dev: bool = False,
    ) -> ResolvedInstall:
        """安装单个包，任一步失败直接抛出 ToyNpmError"""
        return self._install(PackageRef(name, version or LATEST, is_dev), _Pipeline(name))

    def _install(self, ref: PackageRef, pipe: _Pipeline) -> ResolvedInstall:
        target = self.module_path(ref.name)

        # 先解析版本再建目录：版本不存在时不产生任何文件系统写入
        metadata = self.registry.fetch_metadata(ref.name)
        resolved = metadata.resolve(ref.requested_version)
        dist = metadata.versions.get(resolved)
        if not resolved or dist is None:
            raise VersionNotFoundError(ref.name, resolved or ref.requested_version)
        pipe.advance(InstallState.VERSION_RESOLVED)

        # 不清空已有内容：重复安装会覆盖同名文件，旧版本独有的文件保留
        target.mkdir(parents=True, exist_ok=True)
        pipe.advance(InstallState.DIRECTORY_ENSURED)

        tarball = target / f"{ref.name.rsplit('/', 1)[-1]}-{resolved}.tgz"
        pipe.advance(InstallState.DOWNLOADING)
        logger.info("下载 %s@%s", ref.name, resolved)
        self.registry.download(dist.tarball, tarball)

        pipe.advance(InstallState.EXTRACTING)
        archive.extract(tarball, target)
        tarball.unlink()

        # 清单记录请求的版本（保留 "latest"），锁文件记录具体解析结果
        self.manifest.upsert(ref.name, ref.requested_version, ref.is_dev)
        pipe.advance(InstallState.MANIFEST_UPDATED)

        info = self.registry.fetch_version(ref.name, resolved)
        result = ResolvedInstall(
            name=ref.name,
            resolved_version=info.version or resolved,
            source_url=info.dist.tarball or dist.tarball,
            integrity=info.dist.shasum,
        )
        self.lock.upsert(result)
        pipe.advance(InstallState.LOCKED)

        logger.info(
            "已安装 %s@%s%s", ref.name, result.resolved_version,
            " (dev)" if ref.is_dev else "",
        )
        return result

    def _install_task(self, ref: PackageRef) -> InstallOutcome:
        pipe = _Pipeline(ref.name)
        try:
            resolved = self._install(ref, pipe)
        except (ToyNpmError, OSError) as e:
            logger.error("安装失败 %s (停在 %s): %s", ref.name, pipe.state.value, e)
            return InstallOutcome(
                name=ref.name,
                status="failed",
                state=pipe.state,
                error_kind=getattr(e, "code", "IO_ERROR"),
                message=str(e),
            )
        return InstallOutcome(
            name=ref.name, status="installed", state=InstallState.LOCKED, resolved=resolved,
        )

    def install_all(self) -> list[InstallOutcome]:
        """按清单安装全部依赖，返回顺序与清单一致

        清单不存在时记录提示并返回空列表。
        """
        try:
            manifest = self.manifest.require()
        except ManifestMissingError as e:
            logger.warning("%s，无可安装的依赖", e)
            return []

        refs = self._unique(manifest.refs())
        if not refs:
            logger.info("清单中没有依赖")
            return []

        limit = concurrency_limit(len(refs), self.max_concurrency)
        logger.info("开始安装 %d 个包 (并发度 %d)", len(refs), limit)
        outcomes = self._fan_out(self._install_task, refs, limit)
        self._log_summary("安装", outcomes)
        return outcomes

    # ------------------------------------------------------------------
    # 卸载
    # ------------------------------------------------------------------

    def uninstall_one(self, name: str) -> bool:
        """卸载单个包，模块目录不存在时返回 False 且不修改清单/锁文件"""
        target = self.module_path(name)
        if not target.is_dir():
            logger.info("包 %s 未安装", name)
            return False

        # 目录是权威状态，先删目录再修剪元数据
        shutil.rmtree(target)
        if target.parent != self.modules_dir:
            self._remove_empty_scope(target.parent)
        self.manifest.remove(name)
        self.lock.remove(name)
        logger.info("已卸载 %s", name)
        return True

    @staticmethod
    def _remove_empty_scope(scope_dir: Path) -> None:
        """@scope/ 目录下最后一个包卸载后一并删除该目录"""
        try:
            scope_dir.rmdir()
        except OSError:
            # 仍有同 scope 的其他包
            pass

    def _uninstall_task(self, ref: PackageRef) -> InstallOutcome:
        try:
            removed = self.uninstall_one(ref.name)
        except (ToyNpmError, OSError) as e:
            logger.error("卸载失败 %s: %s", ref.name, e)
            return InstallOutcome(
                name=ref.name,
                status="failed",
                state=InstallState.FAILED,
                error_kind=getattr(e, "code", "IO_ERROR"),
                message=str(e),
            )
        return InstallOutcome(name=ref.name, status="uninstalled" if removed else "not_found")

    def uninstall_all(self) -> list[InstallOutcome]:
        """卸载清单中的全部依赖，复用与安装相同的并发上限"""
        try:
            manifest = self.manifest.require()
        except ManifestMissingError as e:
            logger.warning("%s，无可卸载的依赖", e)
            return []

        refs = self._unique(manifest.refs())
        if not refs:
            return []

        limit = concurrency_limit(len(refs), self.max_concurrency)
        outcomes = self._fan_out(self._uninstall_task, refs, limit)
        self._log_summary("卸载", outcomes)
        return outcomes

    def init(self) -> bool:
        """初始化清单文件，已存在时为空操作"""
        return self.manifest.init(self.project_name)

    # ------------------------------------------------------------------
    # 内部
    # ------------------------------------------------------------------

    @staticmethod
    def _unique(refs: list[PackageRef]) -> list[PackageRef]:
        """同名包同时出现在两个分组时只处理第一次出现（常规依赖优先）"""
        seen: set[str] = set()
        unique: list[PackageRef] = []
        for ref in refs:
            if ref.name in seen:
                logger.warning("%s 同时出现在 dependencies 和 devDependencies，只处理一次", ref.name)
                continue
            seen.add(ref.name)
            unique.append(ref)
        return unique

    @staticmethod
    def _fan_out(
        task: Callable[[PackageRef], InstallOutcome], refs: list[PackageRef], limit: int,
    ) -> list[InstallOutcome]:
        with ThreadPoolExecutor(max_workers=limit, thread_name_prefix="toynpm") as executor:
            futures = [executor.submit(task, ref) for ref in refs]
            return [f.result() for f in futures]

    @staticmethod
    def _log_summary(action: str, outcomes: list[InstallOutcome]) -> None:
        failed = [o.name for o in outcomes if not o.ok]
        summary = summarize_outcomes(outcomes)
        if failed:
            logger.warning(
                "%s汇总: %d 成功, %d 失败 (%s)",
                action, summary["total"] - len(failed), len(failed), ", ".join(failed),
            )
        else:
            logger.info("%s汇总: %s", action, summary)
