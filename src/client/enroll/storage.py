"""
凭据落盘：私钥、客户端证书、CA 证书三者要么全部写入，要么全部不写。

三个文件先写入与目标同目录的临时文件并 fsync；已存在的目标先以硬链接备份，
然后依次 os.replace 到目标路径。任一临时文件写入失败时清理已写入的临时文件；
某次替换失败时按相反顺序用备份恢复已替换的目标（原本不存在的则删除），
不会留下新私钥配旧证书这样不一致的组合。
"""

from __future__ import annotations

import os
import secrets
from pathlib import Path

from loguru import logger

from .errors import PersistenceError

KEY_FILE_MODE = 0o600
CERT_FILE_MODE = 0o644


def _staging_path(target: Path, suffix: str = "tmp") -> Path:
    return target.with_name(f".{target.name}.{secrets.token_hex(4)}.{suffix}")


def _write_staged(target: Path, data: bytes, mode: int) -> Path:
    staged = _staging_path(target)
    fd = os.open(staged, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
    except OSError:
        staged.unlink(missing_ok=True)
        raise
    # os.open 的 mode 受 umask 影响
    os.chmod(staged, mode)
    return staged


def _backup(target: Path) -> Path | None:
    """为已存在的目标建立硬链接备份；目标不存在时返回 None。"""
    if not target.exists():
        return None
    backup = _staging_path(target, "bak")
    os.link(target, backup)
    return backup


def _discard(staged: list[Path | None]) -> None:
    for path in staged:
        if path is None:
            continue
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"清理临时文件 {path} 失败: {e}")


def _rollback(replaced: list[tuple[Path, Path | None]]) -> list[str]:
    """按相反顺序撤销已完成的替换，返回无法恢复的目标；其备份文件保留在原处。"""
    failed = []
    for target, backup in reversed(replaced):
        try:
            if backup is None:
                target.unlink(missing_ok=True)
            else:
                os.replace(backup, target)
        except OSError as e:
            logger.error(f"恢复 {target} 失败: {e}")
            failed.append(f"{target}（备份 {backup}）" if backup else str(target))
    return failed


def write_credentials(
    key_pem: bytes,
    cert_pem: bytes,
    ca_pem: bytes,
    key_file: str | os.PathLike,
    cert_file: str | os.PathLike,
    ca_file: str | os.PathLike,
) -> None:
    """
    原子地写入私钥、客户端证书与 CA 证书。已存在的同名文件会被覆盖。
    任一步骤失败时，三个目标都保持调用前的内容（原本不存在的仍不存在）。
    :raises PersistenceError: 任一文件无法写入，属于致命错误。
    """
    plan = [
        (Path(key_file), key_pem, KEY_FILE_MODE),
        (Path(cert_file), cert_pem, CERT_FILE_MODE),
        (Path(ca_file), ca_pem, CERT_FILE_MODE),
    ]

    staged: list[Path] = []
    for target, data, mode in plan:
        try:
            staged.append(_write_staged(target, data, mode))
        except OSError as e:
            _discard(staged)
            raise PersistenceError(f"无法写入 {target}: {e}") from e

    backups: list[Path | None] = []
    for target, _, _ in plan:
        try:
            backups.append(_backup(target))
        except OSError as e:
            _discard(staged + backups)
            raise PersistenceError(f"无法备份 {target}: {e}") from e

    replaced: list[tuple[Path, Path | None]] = []
    for (target, _, _), path, backup in zip(plan, staged, backups):
        try:
            os.replace(path, target)
        except OSError as e:
            failed = _rollback(replaced)
            # 恢复失败的备份不删除
            kept = {b for _, b in replaced if b is not None and b.exists()}
            _discard(staged + [b for b in backups if b not in kept])
            message = f"无法将 {path} 移动到 {target}: {e}"
            if failed:
                message += f"；且无法恢复 {', '.join(failed)}"
            raise PersistenceError(message) from e
        replaced.append((target, backup))
        logger.debug(f"已写入 {target}")

    _discard(backups)
