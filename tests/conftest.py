"""共享 fixture - 内存 tarball 构造 + 假注册表

FakeRegistry 实现与 RegistryClient 相同的三个方法，
tarball 是真实的 .tgz 字节，解压路径与线上一致，无需网络。
"""

from __future__ import annotations

import io
import tarfile
import threading
from pathlib import Path

import pytest

from toynpm.core.exceptions import NetworkError, PackageNotFoundError
from toynpm.core.installer import Installer
from toynpm.core.manifest import LockStore, ManifestStore
from toynpm.core.models import DistInfo, PackageMetadata, VersionInfo

REGISTRY = "https://registry.test"


def make_tgz(files: dict[str, bytes | str], prefix: str = "package") -> bytes:
    """构造 npm 风格 tarball：所有文件位于 prefix/ 包装目录下"""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        if prefix:
            d = tarfile.TarInfo(prefix)
            d.type = tarfile.DIRTYPE
            d.mode = 0o755
            tf.addfile(d)
        for name, content in files.items():
            data = content.encode() if isinstance(content, str) else content
            info = tarfile.TarInfo(f"{prefix}/{name}" if prefix else name)
            info.size = len(data)
            info.mode = 0o644
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def tarball_url(name: str, version: str) -> str:
    return f"{REGISTRY}/{name}/-/{name.rsplit('/', 1)[-1]}-{version}.tgz"


class FakeRegistry:
    """内存注册表，记录每次调用便于断言"""

    def __init__(self) -> None:
        self.packages: dict[str, dict[str, bytes]] = {}
        self.latest: dict[str, str] = {}
        self.blobs: dict[str, bytes] = {}
        self.broken_urls: set[str] = set()
        self.metadata_calls: list[str] = []
        self.version_calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def publish(
        self, name: str, version: str, files: dict[str, bytes | str] | None = None,
        *, latest: bool = True, blob: bytes | None = None,
    ) -> str:
        data = blob if blob is not None else make_tgz(
            files or {"package.json": f'{{"name": "{name}", "version": "{version}"}}',
                      "index.js": "module.exports = 1;\n"},
        )
        self.packages.setdefault(name, {})[version] = data
        self.blobs[tarball_url(name, version)] = data
        if latest:
            self.latest[name] = version
        return tarball_url(name, version)

    def fetch_metadata(self, name: str) -> PackageMetadata:
        with self._lock:
            self.metadata_calls.append(name)
        if name not in self.packages:
            raise PackageNotFoundError(f"注册表中不存在: {name}")
        return PackageMetadata(
            name=name,
            latest=self.latest.get(name, ""),
            versions={
                v: DistInfo(tarball=tarball_url(name, v), shasum=f"sha-{name}-{v}")
                for v in self.packages[name]
            },
        )

    def fetch_version(self, name: str, version: str) -> VersionInfo:
        with self._lock:
            self.version_calls.append((name, version))
        if version not in self.packages.get(name, {}):
            raise PackageNotFoundError(f"注册表中不存在: {name}@{version}")
        return VersionInfo(
            name=name, version=version,
            dist=DistInfo(tarball=tarball_url(name, version), shasum=f"sha-{name}-{version}"),
        )

    def download(self, url: str, dest: Path) -> Path:
        if url in self.broken_urls or url not in self.blobs:
            raise NetworkError(f"下载失败: {url}")
        dest.write_bytes(self.blobs[url])
        return dest


@pytest.fixture()
def fake_registry() -> FakeRegistry:
    reg = FakeRegistry()
    reg.publish("left-pad", "1.1.0", latest=False)
    reg.publish("left-pad", "1.3.0")
    return reg


@pytest.fixture()
def installer(tmp_path: Path, fake_registry: FakeRegistry) -> Installer:
    return Installer(
        registry=fake_registry,
        manifest=ManifestStore(tmp_path / "toy-package.json"),
        lock=LockStore(tmp_path / "toy-package-lock.json"),
        modules_dir=tmp_path / "toy_node_modules",
    )


@pytest.fixture()
def tgz():
    """tarball 构造函数 fixture: tgz({"index.js": "..."}) -> bytes"""
    return make_tgz
