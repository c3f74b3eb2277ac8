"""Cartridge save memories (SRAM, FLASH, EEPROM) backed by a file."""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, BinaryIO, Callable, Iterable, Mapping

Schedule = Callable[[int, Callable[[], None]], Any]


class BackupFile:
    """A save file held in memory whose writes go straight to disk."""

    def __init__(self, path: Path, handle: BinaryIO, data: bytearray) -> None:
        self.path = path
        self._handle = handle
        self._data = data

    @property
    def size(self) -> int:
        return len(self._data)

    @property
    def data(self) -> bytes:
        return bytes(self._data)

    def read(self, index: int) -> int:
        return self._data[index]

    def write(self, index: int, value: int) -> None:
        if not 0 <= index < len(self._data):
            raise IndexError("backup address out of range")
        self._data[index] = value & 0xFF
        self._store(index, 1)

    def memory_set(self, index: int, length: int, value: int) -> None:
        if index < 0 or index + length > len(self._data):
            raise IndexError("backup range out of bounds")
        self._data[index:index + length] = bytes([value & 0xFF]) * length
        self._store(index, length)

    def replace_contents(self, data: bytes) -> None:
        """Overwrite the whole file with the leading bytes of ``data``."""
        if len(data) < len(self._data):
            raise ValueError("not enough data for the backup")
        self._data[:] = data[:len(self._data)]
        self._store(0, len(self._data))

    def close(self) -> None:
        self._handle.close()

    def __enter__(self) -> BackupFile:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _store(self, index: int, length: int) -> None:
        self._handle.seek(index)
        self._handle.write(self._data[index:index + length])
        self._handle.flush()


def open_backup_file(path: str | Path, sizes: Iterable[int], size: int) -> BackupFile:
    """Open a save file of one of the allowed sizes, or create one of ``size`` bytes."""
    path = Path(path)
    valid = tuple(sizes)
    if size not in valid:
        raise ValueError(f"size {size} is not one of {valid}")
    if path.is_file() and path.stat().st_size in valid:
        handle = path.open("r+b")
        data = bytearray(handle.read())
    else:
        data = bytearray(b"\xff" * size)
        handle = path.open("w+b")
        handle.write(data)
        handle.flush()
    return BackupFile(path, handle, data)


class _Backup:
    file: BackupFile

    def close(self) -> None:
        self.file.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class Sram(_Backup):
    """32 KiB battery-backed static RAM."""

    SIZE = 32768

    def __init__(self, save_path: str | Path) -> None:
        self.save_path = Path(save_path)
        self.file: BackupFile | None = None  # type: ignore[assignment]
        self.reset()

    def reset(self) -> None:
        if self.file is not None:
            self.file.close()
        self.file = open_backup_file(self.save_path, (self.SIZE,), self.SIZE)

    def read(self, address: int) -> int:
        return self.file.read(address & 0x7FFF)

    def write(self, address: int, value: int) -> None:
        self.file.write(address & 0x7FFF, value)

    def load_state(self, state: Mapping[str, Any]) -> None:
        self.file.replace_contents(state["data"])

    def copy_state(self) -> dict[str, Any]:
        return {"data": self.file.data}


class FlashSize(enum.IntEnum):
    SIZE_64K = 0
    SIZE_128K = 1


_FLASH_BYTES = (65536, 131072)


class _FlashCommand(enum.IntEnum):
    READ_CHIP_ID = 0x90
    FINISH_CHIP_ID = 0xF0
    ERASE = 0x80
    ERASE_CHIP = 0x10
    ERASE_SECTOR = 0x30
    WRITE_BYTE = 0xA0
    SELECT_BANK = 0xB0


class Flash(_Backup):
    """64 KiB or 128 KiB flash memory with its command protocol."""

    def __init__(self, save_path: str | Path, size: FlashSize = FlashSize.SIZE_64K) -> None:
        self.save_path = Path(save_path)
        self.size = FlashSize(size)
        self.file: BackupFile | None = None  # type: ignore[assignment]
        self.reset()

    def reset(self) -> None:
        self.current_bank = 0
        self.phase = 0
        self.enable_chip_id = False
        self.enable_erase = False
        self.enable_write = False
        self.enable_select = False
        if self.file is not None:
            self.file.close()
        self.file = open_backup_file(
            self.save_path, _FLASH_BYTES, _FLASH_BYTES[self.size]
        )
        self.size = (
            FlashSize.SIZE_64K if self.file.size == _FLASH_BYTES[0] else FlashSize.SIZE_128K
        )

    def _physical(self, address: int) -> int:
        return self.current_bank * 65536 + address

    def read(self, address: int) -> int:
        address &= 0xFFFF
        if self.enable_chip_id and address < 2:
            if self.size == FlashSize.SIZE_128K:
                return 0xC2 if address == 0 else 0x09
            return 0xBF if address == 0 else 0xD4
        return self.file.read(self._physical(address))

    def write(self, address: int, value: int) -> None:
        value &= 0xFF
        if self.phase == 0:
            if address == 0x0E005555 and value == 0xAA:
                self.phase = 1
        elif self.phase == 1:
            if address == 0x0E002AAA and value == 0x55:
                self.phase = 2
        elif self.phase == 2:
            self._handle_command(address, value)
        elif self.phase == 3:
            self._handle_extended(address, value)

    def _handle_command(self, address: int, value: int) -> None:
        if address == 0x0E005555:
            if value == _FlashCommand.READ_CHIP_ID:
                self.enable_chip_id = True
                self.phase = 0
            elif value == _FlashCommand.FINISH_CHIP_ID:
                self.enable_chip_id = False
                self.phase = 0
            elif value == _FlashCommand.ERASE:
                self.enable_erase = True
                self.phase = 0
            elif value == _FlashCommand.ERASE_CHIP:
                if self.enable_erase:
                    self.file.memory_set(0, _FLASH_BYTES[self.size], 0xFF)
                    self.enable_erase = False
                self.phase = 0
            elif value == _FlashCommand.WRITE_BYTE:
                self.enable_write = True
                self.phase = 3
            elif value == _FlashCommand.SELECT_BANK:
                if self.size == FlashSize.SIZE_128K:
                    self.enable_select = True
                    self.phase = 3
                else:
                    self.phase = 0
        elif (
            self.enable_erase
            and (address & ~0xF000) == 0x0E000000
            and value == _FlashCommand.ERASE_SECTOR
        ):
            base = address & 0xF000
            self.file.memory_set(self._physical(base), 0x1000, 0xFF)
            self.enable_erase = False
            self.phase = 0

    def _handle_extended(self, address: int, value: int) -> None:
        if self.enable_write:
            self.file.write(self._physical(address & 0xFFFF), value)
            self.enable_write = False
        elif self.enable_select and address == 0x0E000000:
            self.current_bank = value & 1
            self.enable_select = False
        self.phase = 0

    def load_state(self, state: Mapping[str, Any]) -> None:
        self.current_bank = state["current_bank"]
        self.phase = state["phase"]
        self.enable_chip_id = state["enable_chip_id"]
        self.enable_erase = state["enable_erase"]
        self.enable_write = state["enable_write"]
        self.enable_select = state["enable_select"]
        self.file.replace_contents(state["data"])

    def copy_state(self) -> dict[str, Any]:
        return {
            "current_bank": self.current_bank,
            "phase": self.phase,
            "enable_chip_id": self.enable_chip_id,
            "enable_erase": self.enable_erase,
            "enable_write": self.enable_write,
            "enable_select": self.enable_select,
            "data": self.file.data,
        }


class EepromSize(enum.IntEnum):
    SIZE_4K = 0
    SIZE_64K = 1
    DETECT = 2


_EEPROM_ADDR_BITS = (6, 14)
_EEPROM_BYTES = (512, 8192)
_EEPROM_WRITE_CYCLES = 101400

_ACCEPT_COMMAND = 1 << 0
_READ_MODE = 1 << 1
_WRITE_MODE = 1 << 2
_GET_ADDRESS = 1 << 3
_READING = 1 << 4
_DUMMY_NIBBLE = 1 << 5
_WRITING = 1 << 6
_EAT_DUMMY = 1 << 7
_BUSY = 1 << 8


class Eeprom(_Backup):
    """Serial EEPROM of 512 bytes or 8 KiB, accessed one bit at a time."""

    def __init__(
        self,
        save_path: str | Path,
        size: EepromSize,
        schedule: Schedule,
    ) -> None:
        self.save_path = Path(save_path)
        self.size = EepromSize(size)
        self.schedule = schedule
        self.detect_size = False
        self.file: BackupFile | None = None  # type: ignore[assignment]
        self.reset()

    def reset(self) -> None:
        self.state = _ACCEPT_COMMAND
        self.address = 0
        self._reset_serial_buffer()
        if self.size == EepromSize.DETECT:
            self.size = EepromSize.SIZE_64K
            self.detect_size = True
        else:
            self.detect_size = False
        if self.file is not None:
            self.file.close()
        self.file = open_backup_file(
            self.save_path, _EEPROM_BYTES, _EEPROM_BYTES[self.size]
        )
        self.size = (
            EepromSize.SIZE_4K if self.file.size == _EEPROM_BYTES[0] else EepromSize.SIZE_64K
        )

    def _reset_serial_buffer(self) -> None:
        self.serial_buffer = 0
        self.transmitted_bits = 0

    @property
    def busy(self) -> bool:
        return bool(self.state & _BUSY)

    def read(self, address: int) -> int:
        if self.state & _READING:
            if self.state & _DUMMY_NIBBLE:
                self.transmitted_bits += 1
                if self.transmitted_bits == 4:
                    self.state &= ~_DUMMY_NIBBLE
                    self._reset_serial_buffer()
                return 0

            bit = self.transmitted_bits % 8
            index = self.transmitted_bits // 8
            self.transmitted_bits += 1
            if self.transmitted_bits == 64:
                self.state = _ACCEPT_COMMAND
                self._reset_serial_buffer()
            return (self.file.read(self.address + index) >> (7 - bit)) & 1

        return 0 if self.state & _BUSY else 1

    def write(self, address: int, value: int) -> None:
        if self.state & (_READING | _BUSY):
            return

        value &= 1
        self.serial_buffer = ((self.serial_buffer << 1) | value) & 0xFFFF_FFFF_FFFF_FFFF
        self.transmitted_bits += 1

        if self.state == _ACCEPT_COMMAND and self.transmitted_bits == 2:
            if self.serial_buffer == 2:
                self.state = _WRITE_MODE | _GET_ADDRESS | _WRITING | _EAT_DUMMY
            elif self.serial_buffer == 3:
                self.state = _READ_MODE | _GET_ADDRESS | _EAT_DUMMY
            self._reset_serial_buffer()
        elif self.state & _GET_ADDRESS:
            if self.transmitted_bits == _EEPROM_ADDR_BITS[self.size]:
                self.address = (self.serial_buffer * 8) & 0x1FFF
                if self.state & _WRITE_MODE:
                    self.file.memory_set(self.address, 8, 0)
                self.state &= ~_GET_ADDRESS
                self._reset_serial_buffer()
        elif self.state & _WRITING:
            bit = (self.transmitted_bits - 1) % 8
            index = (self.transmitted_bits - 1) // 8
            current = self.file.read(self.address + index)
            self.file.write(self.address + index, current | (value << (7 - bit)))
            if self.transmitted_bits == 64:
                self.state &= ~_WRITING
                self._reset_serial_buffer()
        elif self.state & _EAT_DUMMY:
            self.state &= ~_EAT_DUMMY
            if self.state & _READ_MODE:
                self.state |= _READING | _DUMMY_NIBBLE
            elif self.state & _WRITE_MODE:
                # The chip needs roughly 6 ms to program the data.
                self.state = _BUSY
                self.schedule(_EEPROM_WRITE_CYCLES, self.on_ready_after_write)
            self._reset_serial_buffer()

    def set_size_hint(self, size: EepromSize) -> None:
        """Fix the size once it is known, if it was being detected."""
        if not self.detect_size:
            return
        size = EepromSize(size)
        size_bytes = _EEPROM_BYTES[size]
        self.size = size
        self.detect_size = False
        if self.file.size != size_bytes:
            self.file.close()
            self.file = open_backup_file(self.save_path, (size_bytes,), size_bytes)

    def on_ready_after_write(self) -> None:
        self.state = _ACCEPT_COMMAND

    def load_state(self, state: Mapping[str, Any]) -> None:
        self.state = state["state"]
        self.address = state["address"]
        self.serial_buffer = state["serial_buffer"]
        self.transmitted_bits = state["transmitted_bits"]
        self.file.replace_contents(state["data"])

    def copy_state(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "address": self.address,
            "serial_buffer": self.serial_buffer,
            "transmitted_bits": self.transmitted_bits,
            "data": self.file.data,
        }