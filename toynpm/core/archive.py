"""tarball 解压

注册表 tarball 统一带一层包装目录（通常是 package/），
解压时剥掉第一段路径，使文件直接落在目标目录下。
"""

from __future__ import annotations

import logging
import tarfile
import zlib
from collections.abc import Iterable, Iterator
from pathlib import Path, PurePosixPath

from toynpm.core.exceptions import ArchiveIOError, CorruptArchiveError

logger = logging.getLogger(__name__)


def _strip(path: str, components: int) -> str:
    parts = PurePosixPath(path).parts
    return "/".join(parts[components:])


def _strip_members(
    members: Iterable[tarfile.TarInfo], components: int,
) -> Iterator[tarfile.TarInfo]:
    """剥掉每个条目的前 components 段路径，只剩包装目录本身的条目被跳过"""
    for member in members:
        stripped = _strip(member.name, components)
        if not stripped:
            continue
        member.name = stripped
        if member.islnk():
            # 硬链接目标同样是相对归档根的路径
            link = _strip(member.linkname, components)
            if not link:
                continue
            member.linkname = link
        yield member


def extract(tarball: Path, target_dir: Path, strip_components: int = 1) -> int:
    """解压 tarball 到 target_dir，返回写出的条目数

    失败时保留 tarball 便于排查，target_dir 中已写出的部分不做清理。

    异常:
        CorruptArchiveError: 归档损坏或包含越界/不安全条目
        ArchiveIOError: 写盘失败
    """
    try:
        with tarfile.open(tarball) as tf:
            members = list(_strip_members(tf.getmembers(), strip_components))
            tf.extractall(path=str(target_dir), members=members, filter="data")  # noqa: S202
    except (tarfile.TarError, EOFError, zlib.error) as e:
        raise CorruptArchiveError(f"归档无法解压: {tarball} - {e}") from e
    except OSError as e:
        raise ArchiveIOError(f"解压写盘失败: {tarball} -> {target_dir} - {e}") from e

    logger.debug("已解压 %d 个条目: %s -> %s", len(members), tarball.name, target_dir)
    return len(members)
