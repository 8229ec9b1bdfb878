from __future__ import annotations

import errno
import os
import stat
from contextlib import suppress
from pathlib import Path


def is_symlink_path(path: Path, *, fail_closed: bool = True) -> bool:
    try:
        return path.is_symlink()
    except FileNotFoundError:
        return False
    except (OSError, RuntimeError):
        return fail_closed


def has_symlink_ancestor(path: Path) -> bool:
    current = path.parent
    while True:
        try:
            meta = current.lstat()
        except FileNotFoundError:
            pass
        except (OSError, RuntimeError):
            return True
        else:
            if stat.S_ISLNK(meta.st_mode):
                return True
        if current == current.parent:
            return False
        current = current.parent


def open_regular_file(path: Path, *, append: bool) -> int:
    """
    Open ``path`` for writing and return the raw descriptor.

    The file is created with mode 0600 when missing. Symlinks (at the path or
    in any ancestor) and non-regular files are rejected with ``OSError``.
    """
    if has_symlink_ancestor(path):
        raise OSError(f"path must not include symlink: {path}")
    if is_symlink_path(path):
        raise OSError(f"path must not be symlink: {path}")
    flags = os.O_WRONLY | os.O_CREAT
    flags |= os.O_APPEND if append else os.O_TRUNC
    if hasattr(os, "O_NONBLOCK"):
        flags |= os.O_NONBLOCK
    if hasattr(os, "O_NOFOLLOW"):
        flags |= os.O_NOFOLLOW
    try:
        fd = os.open(str(path), flags, 0o600)
    except OSError as exc:
        if exc.errno == errno.ELOOP:
            raise OSError(f"path must not be symlink: {path}") from exc
        if exc.errno == errno.ENXIO:
            raise OSError(f"path must be regular file: {path}") from exc
        raise
    try:
        opened_meta = os.fstat(fd)
    except OSError:
        with suppress(OSError):
            os.close(fd)
        raise
    if not stat.S_ISREG(opened_meta.st_mode):
        with suppress(OSError):
            os.close(fd)
        raise OSError(f"path must be regular file: {path}")
    return fd
