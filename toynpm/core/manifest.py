"""依赖清单与锁文件存储

清单 (toy-package.json):
  {name, version, description, main, ..., dependencies, devDependencies}
  除两个依赖分组外的字段原样透传，重写时保持不变。

锁文件 (toy-package-lock.json):
  {<name>: {version, resolved, integrity}}

每次修改都是 "读全文件 → 内存修改 → 原子写全文件"。同一进程内的
并发安装共享同一个 store 实例，读-改-写由实例锁串行化，避免后写者
覆盖先写者的无关键；网络与解压仍然完全并发。
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from toynpm.core.exceptions import ConfigError, ManifestMissingError
from toynpm.core.models import PackageRef, ResolvedInstall
from toynpm.utils.file_io import load_json, save_json

logger = logging.getLogger(__name__)

DEPS_KEY = "dependencies"
DEV_DEPS_KEY = "devDependencies"


def _default_manifest(project_name: str) -> dict[str, Any]:
    return {
        "name": project_name,
        "version": "1.0.0",
        "description": "",
        "main": "index.js",
        DEPS_KEY: {},
        DEV_DEPS_KEY: {},
    }


def _init_template(project_name: str) -> dict[str, Any]:
    return {
        "name": project_name,
        "version": "1.0.0",
        "description": "",
        "main": "index.js",
        "scripts": {
            "test": 'echo "Error: no test specified" && exit 1',
        },
        "keywords": [],
        "author": "",
        "license": "ISC",
        DEPS_KEY: {},
        DEV_DEPS_KEY: {},
    }


def _read(path: Path) -> dict[str, Any]:
    try:
        return load_json(path)
    except (json.JSONDecodeError, ValueError) as e:
        raise ConfigError(f"文件内容无效: {path} - {e}") from e


@dataclass
class Manifest:
    """依赖清单内存表示，extra 保存所有透传字段（含键顺序）"""

    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Manifest:
        extra = {k: v for k, v in data.items() if k not in (DEPS_KEY, DEV_DEPS_KEY)}
        return cls(
            dependencies=dict(data.get(DEPS_KEY) or {}),
            dev_dependencies=dict(data.get(DEV_DEPS_KEY) or {}),
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data[DEPS_KEY] = self.dependencies
        data[DEV_DEPS_KEY] = self.dev_dependencies
        return data

    @property
    def name(self) -> str:
        return self.extra.get("name", "")

    def group(self, is_dev: bool) -> dict[str, str]:
        return self.dev_dependencies if is_dev else self.dependencies

    def refs(self) -> list[PackageRef]:
        """展开两个分组为 PackageRef 列表（先常规依赖，后开发依赖）"""
        refs = [PackageRef(n, v, False) for n, v in self.dependencies.items()]
        refs += [PackageRef(n, v, True) for n, v in self.dev_dependencies.items()]
        return refs


class ManifestStore:
    """依赖清单读写"""

    def __init__(self, path: Path, project_name: str = "toy-npm") -> None:
        self.path = path
        self.project_name = project_name
        self._lock = threading.Lock()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Manifest:
        """加载清单；文件不存在时返回带默认元数据的临时清单（不落盘）"""
        if not self.path.exists():
            return Manifest.from_dict(_default_manifest(self.project_name))
        return Manifest.from_dict(_read(self.path))

    def require(self) -> Manifest:
        """加载已存在的清单，不存在时抛出 ManifestMissingError"""
        if not self.path.exists():
            raise ManifestMissingError(f"{self.path.name} 不存在")
        return self.load()

    def upsert(self, name: str, version: str, is_dev: bool = False) -> None:
        """在 is_dev 选定的分组中设置 name -> version

        另一分组中的同名条目保留不动，分组迁移需先显式 remove。
        """
        with self._lock:
            manifest = self.load()
            manifest.group(is_dev)[name] = version
            save_json(self.path, manifest.to_dict())
        logger.debug(
            "清单已更新: %s[%s] = %s",
            DEV_DEPS_KEY if is_dev else DEPS_KEY, name, version,
        )

    def remove(self, name: str) -> bool:
        """从两个分组中删除 name，返回是否有改动；清单不存在时不创建"""
        with self._lock:
            if not self.path.exists():
                return False
            manifest = self.load()
            removed = manifest.dependencies.pop(name, None) is not None
            removed = manifest.dev_dependencies.pop(name, None) is not None or removed
            if removed:
                save_json(self.path, manifest.to_dict())
        return removed

    def init(self, project_name: str | None = None) -> bool:
        """仅在清单不存在时写入模板，返回是否新建"""
        with self._lock:
            if self.path.exists():
                logger.info("%s 已存在，跳过初始化", self.path.name)
                return False
            save_json(self.path, _init_template(project_name or self.project_name))
        logger.info("已创建 %s", self.path.name)
        return True


class LockStore:
    """锁文件读写"""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def load(self) -> dict[str, dict[str, str]]:
        return _read(self.path)

    def get(self, name: str) -> dict[str, str] | None:
        return self.load().get(name)

    def upsert(self, resolved: ResolvedInstall) -> None:
        with self._lock:
            data = self.load()
            data[resolved.name] = resolved.to_lock_entry()
            save_json(self.path, data)
        logger.debug("锁文件已更新: %s@%s", resolved.name, resolved.resolved_version)

    def remove(self, name: str) -> bool:
        """删除 name 对应的条目，不存在时不是错误"""
        with self._lock:
            data = self.load()
            if name not in data:
                return False
            del data[name]
            save_json(self.path, data)
        return True
