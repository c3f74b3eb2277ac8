"""Loading the system BIOS image."""

from __future__ import annotations

from pathlib import Path

from gbaplat.rom_loader import BadImageError, CannotFindFileError, CannotOpenFileError

BIOS_SIZE = 0x4000


def load_bios(path: str | Path) -> bytes:
    """Read a BIOS image, which must be exactly 16 KiB."""
    path = Path(path)
    if not path.exists():
        raise CannotFindFileError(f"cannot find {path}")
    if path.is_dir():
        raise CannotOpenFileError(f"{path} is a directory")
    try:
        size = path.stat().st_size
        if size != BIOS_SIZE:
            raise BadImageError(f"BIOS size {size} is not {BIOS_SIZE}")
        return path.read_bytes()
    except OSError as ex:
        raise CannotOpenFileError(f"cannot open {path}: {ex}") from ex