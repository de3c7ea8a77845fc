"""Startup and shutdown handling of the plaintext deployment targets."""

from pathlib import Path

from simple_secrets.core.errors import FatalStartupError
from simple_secrets.core.logging import structured_log
from simple_secrets.services.files import purge_directory

EPHEMERAL_FILESYSTEMS = frozenset({"tmpfs", "ramfs"})


def read_mounts(mounts_file: Path) -> list[tuple[str, str]]:
    """(mount point, filesystem type) pairs from a /proc/mounts style file."""
    mounts = []
    for line in Path(mounts_file).read_text(encoding="utf-8").splitlines():
        fields = line.split()
        if len(fields) >= 3:
            # Spaces in mount points are octal-escaped
            mounts.append((fields[1].replace("\\040", " "), fields[2]))
    return mounts


def filesystem_type(path: Path, mounts: list[tuple[str, str]]) -> str:
    """Filesystem type of the longest mount point containing path."""
    resolved = Path(path).resolve()
    best, best_len = "", -1
    for mount_point, fs_type in mounts:
        mp = Path(mount_point)
        if (resolved == mp or mp in resolved.parents) and len(mp.parts) > best_len:
            best, best_len = fs_type, len(mp.parts)
    return best


def verify_ephemeral_storage(paths: list[Path], strict: bool, mounts_file: Path = Path("/proc/mounts")) -> list[Path]:
    """Check that every deployment target lives on tmpfs/ramfs.

    Returns the offending paths. In strict mode any offender raises FatalStartupError;
    otherwise each one is logged as a warning.
    """
    try:
        mounts = read_mounts(mounts_file)
    except OSError as exc:
        mounts = []
        structured_log(
            "WARNING",
            "Cannot read mount table",
            operation="storage.check",
            error={"type": type(exc).__name__, "message": str(exc)},
        )

    offenders = []
    for path in paths:
        fs_type = filesystem_type(path, mounts)
        if fs_type not in EPHEMERAL_FILESYSTEMS:
            offenders.append(path)
            structured_log(
                "ERROR" if strict else "WARNING",
                "Deployment target is not on ephemeral storage",
                operation="storage.check",
                metadata={"path": str(path), "filesystem": fs_type or "unknown"},
            )

    if offenders and strict:
        raise FatalStartupError(
            "Deployment targets must be mounted as tmpfs",
            details={"paths": [str(p) for p in offenders]},
        )
    return offenders


def purge_targets(paths: list[Path]) -> int:
    """Remove all deployed plaintext below each target; errors are logged, not raised."""
    removed = 0
    for path in paths:
        try:
            removed += purge_directory(Path(path))
        except OSError as exc:
            structured_log(
                "ERROR",
                "Failed to purge deployment target",
                operation="storage.purge",
                metadata={"path": str(path)},
                error={"type": type(exc).__name__, "message": str(exc)},
            )
    structured_log("INFO", "Deployment targets purged", operation="storage.purge", metadata={"entries": removed})
    return removed
