"""Loading cartridge images and building the hardware found on the cartridge."""

from __future__ import annotations

import logging
import tarfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable

from gbaplat.backup import Eeprom, EepromSize, Flash, FlashSize, Schedule, Sram
from gbaplat.game_db import BackupType, GameInfo, GPIODeviceType, lookup_game
from gbaplat.gpio import GPIO, RTC, SolarSensor

log = logging.getLogger(__name__)

MAX_ROM_SIZE = 32 * 1024 * 1024
HEADER_SIZE = 0xC0
_GAME_CODE_OFFSET = 0xAC
_ROM_EXTENSIONS = (".gba", ".GBA")

_SIGNATURES: tuple[tuple[bytes, BackupType], ...] = (
    (b"EEPROM_V", BackupType.EEPROM_DETECT),
    (b"SRAM_V", BackupType.SRAM),
    (b"SRAM_F_V", BackupType.SRAM),
    (b"FLASH_V", BackupType.FLASH_64),
    (b"FLASH512_V", BackupType.FLASH_64),
    (b"FLASH1M_V", BackupType.FLASH_128),
)

Backup = Sram | Flash | Eeprom


class LoaderError(Exception):
    """A file could not be loaded."""


class CannotFindFileError(LoaderError):
    """The file does not exist."""


class CannotOpenFileError(LoaderError):
    """The path exists but could not be opened as a file."""


class BadImageError(LoaderError):
    """The file was read but does not hold a usable image."""


@dataclass
class LoadedROM:
    """A cartridge image together with its save memory and GPIO devices."""

    data: bytes
    backup: Backup | None
    gpio: GPIO | None
    rom_mask: int
    backup_type: BackupType
    game_info: GameInfo = field(default_factory=GameInfo)

    def close(self) -> None:
        """Release the save file, if any."""
        if self.backup is not None:
            self.backup.close()

    def __enter__(self) -> LoadedROM:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def round_to_power_of_two(size: int) -> int:
    """Return the smallest power of two that is at least ``size`` (and at least 1)."""
    result = 1
    while result < size:
        result *= 2
    return result


def _is_rom_name(name: str) -> bool:
    return PurePosixPath(name).suffix in _ROM_EXTENSIONS


def _read_from_archive(path: Path) -> bytes | None:
    """Return the first ROM image inside an archive.

    Returns None if the file is not a readable archive and raises
    BadImageError if it is an archive without a ROM image.
    """
    try:
        if zipfile.is_zipfile(path):
            with zipfile.ZipFile(path) as archive:
                for info in archive.infolist():
                    if not info.is_dir() and _is_rom_name(info.filename):
                        return archive.read(info)
            raise BadImageError(f"no ROM image found in archive {path}")
        if tarfile.is_tarfile(path):
            with tarfile.open(path) as archive:
                for member in archive:
                    if member.isfile() and _is_rom_name(member.name):
                        extracted = archive.extractfile(member)
                        if extracted is not None:
                            return extracted.read()
            raise BadImageError(f"no ROM image found in archive {path}")
    except (OSError, zipfile.BadZipFile, tarfile.TarError):
        return None
    return None


def read_rom_file(path: str | Path) -> bytes:
    """Read a ROM image, either directly or from inside a zip or tar archive."""
    path = Path(path)
    if not path.exists():
        raise CannotFindFileError(f"cannot find {path}")
    if path.is_dir():
        raise CannotOpenFileError(f"{path} is a directory")

    data = _read_from_archive(path)
    if data is not None:
        return data

    try:
        return path.read_bytes()
    except OSError as ex:
        raise CannotOpenFileError(f"cannot open {path}: {ex}") from ex


def game_info_for(data: bytes) -> GameInfo:
    """Look up the game database entry for the game code in the ROM header."""
    code = bytes(data[_GAME_CODE_OFFSET:_GAME_CODE_OFFSET + 4])
    return lookup_game(code)


def detect_backup_type(data: bytes) -> BackupType:
    """Guess the save memory type from library signatures in the ROM."""
    size = len(data)
    for offset in range(0, size, 4):
        for signature, kind in _SIGNATURES:
            if data.startswith(signature, offset) and offset + len(signature) <= size:
                return kind
    return BackupType.DETECT


def create_backup(
    save_path: str | Path,
    backup_type: BackupType,
    schedule: Schedule | None = None,
) -> Backup | None:
    """Create the save memory of the given type, or None where there is none."""
    if backup_type == BackupType.SRAM:
        return Sram(save_path)
    if backup_type == BackupType.FLASH_64:
        return Flash(save_path, FlashSize.SIZE_64K)
    if backup_type == BackupType.FLASH_128:
        return Flash(save_path, FlashSize.SIZE_128K)

    eeprom_sizes = {
        BackupType.EEPROM_4: EepromSize.SIZE_4K,
        BackupType.EEPROM_64: EepromSize.SIZE_64K,
        BackupType.EEPROM_DETECT: EepromSize.DETECT,
    }
    if backup_type in eeprom_sizes:
        if schedule is None:
            raise ValueError("an EEPROM backup needs a scheduler")
        return Eeprom(save_path, eeprom_sizes[backup_type], schedule)
    return None


def load_rom(
    rom_path: str | Path,
    save_path: str | Path | None = None,
    backup_type: BackupType = BackupType.DETECT,
    force_gpio: GPIODeviceType = GPIODeviceType.NONE,
    schedule: Schedule | None = None,
    raise_irq: Callable[[], None] | None = None,
) -> LoadedROM:
    """Load a ROM image and set up its save memory and GPIO devices.

    The save file defaults to the ROM path with a ``.sav`` extension.
    """
    rom_path = Path(rom_path)
    if save_path is None:
        save_path = rom_path.with_suffix(".sav")

    data = read_rom_file(rom_path)
    size = len(data)
    if size < HEADER_SIZE or size > MAX_ROM_SIZE:
        raise BadImageError(f"ROM size {size} is out of range")

    game_info = game_info_for(data)

    if backup_type == BackupType.DETECT:
        if game_info.backup_type != BackupType.DETECT:
            backup_type = game_info.backup_type
        else:
            backup_type = detect_backup_type(data)
            if backup_type == BackupType.DETECT:
                log.warning("ROMLoader: failed to detect backup type!")
                backup_type = BackupType.SRAM

    backup = create_backup(save_path, backup_type, schedule)

    gpio = None
    devices = GPIODeviceType(game_info.gpio | force_gpio)
    if devices != GPIODeviceType.NONE:
        gpio = GPIO()
        if devices & GPIODeviceType.RTC:
            gpio.attach(RTC(raise_irq if raise_irq is not None else (lambda: None)))
        if devices & GPIODeviceType.SOLAR_SENSOR:
            gpio.attach(SolarSensor())

    rom_mask = MAX_ROM_SIZE - 1
    if game_info.mirror:
        rom_mask = round_to_power_of_two(size) - 1

    return LoadedROM(
        data=bytes(data),
        backup=backup,
        gpio=gpio,
        rom_mask=rom_mask,
        backup_type=backup_type,
        game_info=game_info,
    )