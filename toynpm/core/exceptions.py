"""统一异常体系

所有业务异常继承 ToyNpmError，每个子类带有稳定的 code，
批量安装/卸载时作为单包失败的错误类型写入 InstallOutcome，
CLI 层据此输出友好提示。
"""

from __future__ import annotations


class ToyNpmError(Exception):
    """toy-npm 基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(ToyNpmError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(ToyNpmError):
    """输入数据校验失败（包名、URL 协议等）"""

    code = "VALIDATION_ERROR"


class PackageNotFoundError(ToyNpmError):
    """注册表中不存在该包"""

    code = "NOT_FOUND"


class VersionNotFoundError(PackageNotFoundError):
    """包存在，但元数据中没有请求的版本"""

    def __init__(self, name: str, version: str) -> None:
        super().__init__(f"包 '{name}' 不存在版本 {version}")
        self.name = name
        self.version = version


class NetworkError(ToyNpmError):
    """访问注册表时的传输失败"""

    code = "NETWORK_ERROR"


class CorruptArchiveError(ToyNpmError):
    """tarball 无法读取或包含不安全的条目"""

    code = "CORRUPT_ARCHIVE"


class ArchiveIOError(ToyNpmError):
    """解压写盘失败"""

    code = "IO_ERROR"


class ManifestMissingError(ToyNpmError):
    """需要已存在清单的操作找不到清单文件"""

    code = "MANIFEST_MISSING"
