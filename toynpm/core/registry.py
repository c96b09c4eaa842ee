"""注册表客户端

职责:
- GET <registry>/<name> 拉取包元数据
- GET <registry>/<name>/<version> 拉取单版本规范字段
- 流式下载 tarball 到本地文件

本层不做重试，失败直接抛出，由编排层按包汇总。
"""

from __future__ import annotations

import json
import logging
import shutil
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path
from typing import Any

from toynpm.core.exceptions import NetworkError, PackageNotFoundError, ValidationError
from toynpm.core.models import PackageMetadata, VersionInfo

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
_ALLOWED_SCHEMES = frozenset(("http", "https"))


def _check_remote(url: str, what: str) -> None:
    """注册表地址与元数据中的 tarball 地址都必须是 http(s) 远程地址"""
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES or not parsed.netloc:
        raise ValidationError(f"{what}只支持 http/https 远程地址: {url}")


class RegistryClient:
    """只读注册表客户端"""

    def __init__(self, base_url: str, timeout: int = 60) -> None:
        _check_remote(base_url, "注册表地址")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _package_url(self, name: str, version: str = "") -> str:
        # scoped 包 @scope/name 在注册表路径中编码为 @scope%2Fname
        url = f"{self.base_url}/{urllib.parse.quote(name, safe='@')}"
        if version:
            url += f"/{urllib.parse.quote(version, safe='')}"
        return url

    def _get_json(self, url: str, name: str) -> dict[str, Any]:
        req = urllib.request.Request(url, headers={"Accept": "application/json"})
        logger.debug("GET %s", url)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:  # nosec B310
                body = resp.read()
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise PackageNotFoundError(f"注册表中不存在: {name} ({url})") from e
            raise NetworkError(f"注册表请求失败 HTTP {e.code}: {url}") from e
        except (urllib.error.URLError, OSError) as e:
            raise NetworkError(f"注册表请求失败: {url} - {e}") from e

        try:
            data = json.loads(body)
        except ValueError as e:
            raise NetworkError(f"注册表响应不是合法 JSON: {url}") from e
        if not isinstance(data, dict):
            raise NetworkError(f"注册表响应格式异常: {url}")
        return data

    def fetch_metadata(self, name: str) -> PackageMetadata:
        """拉取包的全部版本元数据"""
        data = self._get_json(self._package_url(name), name)
        return PackageMetadata.from_dict(name, data)

    def fetch_version(self, name: str, version: str) -> VersionInfo:
        """拉取指定版本的规范字段 {version, dist.tarball, dist.shasum}"""
        data = self._get_json(self._package_url(name, version), name)
        return VersionInfo.from_dict(name, data)

    def download(self, url: str, dest: Path) -> Path:
        """将 tarball 流式写入 dest，失败时删除不完整的文件"""
        _check_remote(url, f"tarball {dest.name} ")
        logger.debug("下载: %s -> %s", url, dest)
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as resp, \
                    open(dest, "wb") as f:  # nosec B310
                shutil.copyfileobj(resp, f, _CHUNK_SIZE)
        except (urllib.error.URLError, OSError) as e:
            dest.unlink(missing_ok=True)
            raise NetworkError(f"下载失败: {url} - {e}") from e
        return dest
