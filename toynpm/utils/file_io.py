"""文件统一读写工具

集中管理清单/锁文件（JSON）与配置文件（YAML）的读写，
统一 encoding="utf-8"、空值保护、目录自动创建、原子写入。
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


def atomic_write(path: Path, content: str) -> None:
    """原子写入文件：先写同目录临时文件再 rename，防止中途崩溃导致损坏

    异常:
        OSError: 文件写入或移动失败
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, str(path))
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def load_json(path: str | Path) -> dict[str, Any]:
    """读取 JSON 对象文件

    返回:
        dict: 文件不存在或为空时返回空字典

    异常:
        json.JSONDecodeError: 内容不是合法 JSON
        ValueError: 顶层不是对象
    """
    p = Path(path)
    if not p.exists():
        return {}

    text = p.read_text(encoding="utf-8")
    if not text.strip():
        return {}

    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(
            f"{p} 顶层必须是 JSON 对象 (实际类型: {type(data).__name__})"
        )
    return data


def save_json(path: str | Path, data: dict[str, Any]) -> None:
    """原子写入 JSON 文件（两空格缩进，保持键顺序）"""
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    try:
        atomic_write(Path(path), content)
    except OSError as e:
        logger.error("写入文件失败: %s, 错误: %s", path, e)
        raise


def load_yaml(path: str | Path) -> dict[str, Any]:
    """安全读取 YAML 文件

    返回:
        dict: 文件不存在、为空、或内容不是字典类型时返回空字典
    """
    p = Path(path)
    if not p.exists():
        return {}

    try:
        with open(p, encoding="utf-8") as f:
            result = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("解析 YAML 文件失败: %s, 错误: %s", path, e)
        raise

    if result is None:
        return {}
    if not isinstance(result, dict):
        logger.warning(
            "%s 内容不是字典类型 (实际类型: %s)，返回空字典",
            path, type(result).__name__,
        )
        return {}
    return result
