"""
Archive transfer: pack a directory tree into a zip stream and back.

No engine access. The snapshot controller uses ``dump`` on the scratch
directory produced by ``EXPORT DATABASE`` and ``load`` to recreate one
before ``IMPORT DATABASE``.

Invariants:
    - Entry names are POSIX paths relative to the packed directory
    - An empty tree produces a valid archive with zero entries
    - load() never writes outside its destination directory

How to change safely:
    - Older snapshots must stay loadable; only add, never rename, entries
    - Always load into a disposable scratch directory
"""

from __future__ import annotations

import logging
import os
import shutil
import zipfile
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from ..errors import CorruptArchiveError, StorageError

logger = logging.getLogger(__name__)


def dump(source_dir: Path | str, stream: BinaryIO) -> int:
    """Pack every file under ``source_dir`` into ``stream``.

    Args:
        source_dir: Directory tree to pack
        stream: Writable binary stream receiving the archive

    Returns:
        Number of files packed

    Raises:
        StorageError: If a file cannot be read or the stream cannot be written
    """
    root = Path(source_dir)
    count = 0
    try:
        with zipfile.ZipFile(stream, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for dirpath, dirnames, filenames in os.walk(root):
                dirnames.sort()
                for filename in sorted(filenames):
                    path = Path(dirpath) / filename
                    archive.write(path, arcname=path.relative_to(root).as_posix())
                    count += 1
    except OSError as e:
        raise StorageError(f"Failed to archive {root}: {e}", path=str(root)) from e

    logger.debug(f"Archived {count} files from {root}")
    return count


def _safe_target(dest: Path, name: str) -> Path:
    """Resolve an entry name inside ``dest``, rejecting escapes."""
    member = PurePosixPath(name)
    if member.is_absolute() or ".." in member.parts:
        raise CorruptArchiveError(f"Archive entry escapes destination: {name!r}")
    return dest.joinpath(*member.parts)


def load(source: Path | str | BinaryIO, dest_dir: Path | str) -> list[str]:
    """Unpack every entry of ``source`` into ``dest_dir``.

    Args:
        source: Archive path or readable binary stream
        dest_dir: Destination directory, created if absent

    Returns:
        Entry names written

    Raises:
        CorruptArchiveError: If source is not a valid archive or an entry
            would be written outside dest_dir
        StorageError: If writing fails; a partial extraction may remain
    """
    dest = Path(dest_dir)
    label = str(source) if isinstance(source, (str, Path)) else "<stream>"
    written: list[str] = []

    try:
        dest.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(source, "r") as archive:
            for info in archive.infolist():
                target = _safe_target(dest, info.filename)
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                written.append(info.filename)
    except CorruptArchiveError as e:
        e.path = label
        e.details["path"] = label
        raise
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as e:
        raise CorruptArchiveError(f"Invalid snapshot archive {label}: {e}", path=label) from e
    except OSError as e:
        raise StorageError(f"Failed to unpack {label} into {dest}: {e}", path=str(dest)) from e

    logger.debug(f"Unpacked {len(written)} files from {label} into {dest}")
    return written
