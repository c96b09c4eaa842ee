"""核心数据模型

PackageRef / ResolvedInstall / InstallOutcome 及注册表元数据，
registry、manifest、installer 统一从此处导入。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from toynpm.core.exceptions import NetworkError

LATEST = "latest"


def _mapping(value: Any, name: str, what: str) -> dict[str, Any]:
    """注册表字段缺失视为空对象，类型不对则按格式异常处理"""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise NetworkError(f"注册表响应格式异常: {name} 的 {what} 不是对象")
    return value


def _text(value: Any, name: str, what: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise NetworkError(f"注册表响应格式异常: {name} 的 {what} 不是字符串")
    return value


@dataclass
class PackageRef:
    """一次操作中的依赖标识（由 CLI 输入或清单条目临时构造）"""

    name: str
    requested_version: str = LATEST
    is_dev: bool = False


@dataclass
class DistInfo:
    """单个版本的分发信息"""

    tarball: str
    shasum: str = ""


@dataclass
class PackageMetadata:
    """注册表 GET /<name> 返回的包元数据"""

    name: str
    latest: str
    versions: dict[str, DistInfo] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> PackageMetadata:
        versions: dict[str, DistInfo] = {}
        for ver, info in _mapping(data.get("versions"), name, "versions").items():
            dist = _mapping(_mapping(info, name, f"versions.{ver}").get("dist"), name, "dist")
            if not dist.get("tarball"):
                continue
            versions[ver] = DistInfo(
                tarball=_text(dist["tarball"], name, "tarball"),
                shasum=_text(dist.get("shasum"), name, "shasum"),
            )
        tags = _mapping(data.get("dist-tags"), name, "dist-tags")
        return cls(
            name=_text(data.get("name"), name, "name") or name,
            latest=_text(tags.get("latest"), name, "dist-tags.latest"),
            versions=versions,
        )

    def resolve(self, requested: str | None) -> str:
        """'latest' 或空版本替换为 dist-tags.latest，其余原样返回"""
        if not requested or requested == LATEST:
            return self.latest
        return requested


@dataclass
class VersionInfo:
    """注册表 GET /<name>/<version> 返回的单版本规范字段"""

    name: str
    version: str
    dist: DistInfo

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> VersionInfo:
        dist = _mapping(data.get("dist"), name, "dist")
        return cls(
            name=_text(data.get("name"), name, "name") or name,
            version=_text(data.get("version"), name, "version"),
            dist=DistInfo(
                tarball=_text(dist.get("tarball"), name, "tarball"),
                shasum=_text(dist.get("shasum"), name, "shasum"),
            ),
        )


@dataclass
class ResolvedInstall:
    """一次成功安装的结果，对应锁文件中的一条记录"""

    name: str
    resolved_version: str
    source_url: str
    integrity: str = ""

    def to_lock_entry(self) -> dict[str, str]:
        return {
            "version": self.resolved_version,
            "resolved": self.source_url,
            "integrity": self.integrity,
        }


class InstallState(str, Enum):
    """单包安装流水线状态"""

    PENDING = "pending"
    VERSION_RESOLVED = "version_resolved"
    DIRECTORY_ENSURED = "directory_ensured"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    MANIFEST_UPDATED = "manifest_updated"
    LOCKED = "locked"
    FAILED = "failed"


@dataclass
class InstallOutcome:
    """批量安装/卸载中单个包的结果

    status: "installed", "uninstalled", "not_found", "failed"
    state:  失败时为流水线最后到达的状态
    """

    name: str
    status: str
    state: InstallState = InstallState.PENDING
    resolved: ResolvedInstall | None = None
    error_kind: str = ""
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status != "failed"


def summarize_outcomes(outcomes: list[InstallOutcome]) -> dict[str, int]:
    """统计批量操作结果分布"""
    summary: dict[str, int] = {"total": len(outcomes)}
    for o in outcomes:
        summary[o.status] = summary.get(o.status, 0) + 1
    return summary
