from __future__ import annotations

import logging
import os
import tarfile
import tempfile
from typing import IO, Iterator

logger = logging.getLogger("fnrun.packager")

DEFAULT_SPOOL_BYTES = 8 * 1024 * 1024


def iter_entries(directory: str) -> Iterator[tuple[str, str]]:
    """Yield (absolute path, archive name) for everything below ``directory``.

    Directories are walked in sorted order; the root itself is not yielded.
    Symlinked directories are archived as links, not followed.
    """
    def _raise(err: OSError) -> None:
        raise err

    for dirpath, dirnames, filenames in os.walk(directory, onerror=_raise):
        dirnames.sort()
        for name in sorted(dirnames + filenames):
            path = os.path.join(dirpath, name)
            arcname = os.path.relpath(path, directory).replace(os.sep, "/")
            yield path, arcname


def write_context(directory: str, fileobj: IO[bytes]) -> None:
    """Write a tar build context for ``directory`` into ``fileobj``.

    Raises OSError if the directory is unreadable or an entry vanishes while
    it is being archived.
    """
    if not os.path.isdir(directory):
        if not os.path.exists(directory):
            raise FileNotFoundError(f"Build directory not found: {directory}")
        raise NotADirectoryError(f"Build path is not a directory: {directory}")

    with tarfile.open(fileobj=fileobj, mode="w") as tar:
        for path, arcname in iter_entries(directory):
            info = tar.gettarinfo(path, arcname=arcname)
            if info is None:
                # sockets and other special files have no tar representation
                logger.debug("Skipping %s: file type cannot be archived", path)
                continue
            if info.isreg():
                with open(path, "rb") as f:
                    tar.addfile(info, f)
            else:
                tar.addfile(info)


def package_context(directory: str, spool_bytes: int = DEFAULT_SPOOL_BYTES) -> IO[bytes]:
    """Return a readable tar build context for ``directory``, positioned at 0.

    Small contexts stay in memory; larger ones spill to a temporary file.
    The caller owns (and must close) the returned file object.
    """
    fileobj = tempfile.SpooledTemporaryFile(max_size=spool_bytes, mode="w+b")
    try:
        write_context(directory, fileobj)
        fileobj.seek(0)
    except BaseException:
        fileobj.close()
        raise
    return fileobj
