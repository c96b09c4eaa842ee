"""集中配置管理

所有路径都相对显式的 root_dir 解析，不从执行脚本所在位置推断。
支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path

import yaml

from toynpm.core.exceptions import ConfigError
from toynpm.utils.file_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "configs/default.yml"


@dataclass
class Config:
    """客户端全局配置"""

    # 目录与文件（相对 root_dir）
    root_dir: str = "."
    modules_dir: str = "toy_node_modules"
    manifest_file: str = "toy-package.json"
    lock_file: str = "toy-package-lock.json"

    # 注册表
    registry_url: str = "https://registry.npmjs.org"
    request_timeout: int = 60  # 秒

    # 并发上限：min(ceil(N/2), max_concurrency)
    max_concurrency: int = 8

    # init 生成的项目名 / 缺失清单时的临时项目名
    project_name: str = "toy-project"
    fallback_project_name: str = "toy-npm"

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @property
    def root(self) -> Path:
        return Path(self.root_dir)

    @property
    def modules_path(self) -> Path:
        return self.root / self.modules_dir

    @property
    def manifest_path(self) -> Path:
        return self.root / self.manifest_file

    @property
    def lock_path(self) -> Path:
        return self.root / self.lock_file

    @classmethod
    def for_root(cls, root_dir: str | Path) -> Config:
        """以指定目录为项目根构造默认配置"""
        return cls(root_dir=str(root_dir))

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except yaml.YAMLError as e:
            raise ConfigError(f"配置文件格式错误: {path} - {e}") from e
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        if cfg.max_concurrency < 1:
            raise ConfigError(f"max_concurrency 必须 >= 1: {cfg.max_concurrency}")
        return cfg

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = DEFAULT_CONFIG_FILE) -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.debug("配置已加载: %s", path)
    return _current


def set_config(cfg: Config) -> Config:
    """直接替换全局配置（CLI --root 覆盖、测试使用）"""
    global _current  # noqa: PLW0603
    _current = cfg
    return _current
