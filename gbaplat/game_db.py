"""Known cartridge properties keyed by the four-character game code."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


class BackupType(enum.Enum):
    """Kind of save memory found on a cartridge."""

    DETECT = "detect"
    NONE = "none"
    SRAM = "sram"
    FLASH_64 = "flash64"
    FLASH_128 = "flash128"
    EEPROM_4 = "eeprom512"
    EEPROM_64 = "eeprom8192"
    EEPROM_DETECT = "eeprom_detect"


class GPIODeviceType(enum.IntFlag):
    """Devices that may be wired to the cartridge GPIO port."""

    NONE = 0
    RTC = 1
    SOLAR_SENSOR = 2


@dataclass(frozen=True)
class GameInfo:
    """Cartridge properties for one game."""

    backup_type: BackupType = BackupType.DETECT
    gpio: GPIODeviceType = GPIODeviceType.NONE
    mirror: bool = False


_B = BackupType
_G = GPIODeviceType

_ENTRIES: dict[str, tuple[BackupType, GPIODeviceType, bool]] = {
    "ALFP": (_B.EEPROM_64, _G.NONE, False),
    "ALGP": (_B.EEPROM_64, _G.NONE, False),
    "AROP": (_B.EEPROM_64, _G.NONE, False),
    "AR8e": (_B.EEPROM_64, _G.NONE, False),
    "AXVE": (_B.FLASH_128, _G.RTC, False),
    "AXPE": (_B.FLASH_128, _G.RTC, False),
    "AX4P": (_B.FLASH_128, _G.NONE, False),
    "A2YE": (_B.NONE, _G.NONE, False),
    "BDBP": (_B.EEPROM_64, _G.NONE, False),
    "BM5P": (_B.FLASH_64, _G.NONE, False),
    "BPEE": (_B.FLASH_128, _G.RTC, False),
    "BY6P": (_B.SRAM, _G.NONE, False),
    "B24E": (_B.FLASH_128, _G.NONE, False),
    "FADE": (_B.EEPROM_4, _G.NONE, True),
    "FBME": (_B.EEPROM_4, _G.NONE, True),
    "FDKE": (_B.EEPROM_4, _G.NONE, True),
    "FDME": (_B.EEPROM_4, _G.NONE, True),
    "FEBE": (_B.EEPROM_64, _G.NONE, True),
    "FICE": (_B.EEPROM_4, _G.NONE, True),
    "FLBE": (_B.EEPROM_64, _G.NONE, True),
    "FMRE": (_B.EEPROM_4, _G.NONE, True),
    "FP7E": (_B.EEPROM_4, _G.NONE, True),
    "FSME": (_B.EEPROM_4, _G.NONE, True),
    "FXVE": (_B.EEPROM_4, _G.NONE, True),
    "FZLE": (_B.EEPROM_64, _G.NONE, True),
    "KYGP": (_B.EEPROM_64, _G.NONE, False),
    "U3IP": (_B.DETECT, _G.RTC | _G.SOLAR_SENSOR, False),
    "U32P": (_B.DETECT, _G.RTC | _G.SOLAR_SENSOR, False),
    "AGFE": (_B.FLASH_64, _G.RTC, False),
    "AGSE": (_B.FLASH_64, _G.RTC, False),
    "ALFE": (_B.EEPROM_64, _G.NONE, False),
    "ALGE": (_B.EEPROM_64, _G.NONE, False),
    "AX4E": (_B.FLASH_128, _G.NONE, False),
    "BDBE": (_B.EEPROM_64, _G.NONE, False),
    "BG3E": (_B.EEPROM_64, _G.NONE, False),
    "BLFE": (_B.EEPROM_64, _G.NONE, False),
    "BPRE": (_B.FLASH_128, _G.NONE, False),
    "BPGE": (_B.FLASH_128, _G.NONE, False),
    "BT4E": (_B.EEPROM_64, _G.NONE, False),
    "BUFE": (_B.EEPROM_64, _G.NONE, False),
    "BYGE": (_B.SRAM, _G.NONE, False),
    "KYGE": (_B.EEPROM_64, _G.NONE, False),
    "PSAE": (_B.FLASH_128, _G.NONE, False),
    "U3IE": (_B.DETECT, _G.RTC | _G.SOLAR_SENSOR, False),
    "U32E": (_B.DETECT, _G.RTC | _G.SOLAR_SENSOR, False),
    "ALFJ": (_B.EEPROM_64, _G.NONE, False),
    "AXPJ": (_B.FLASH_128, _G.RTC, False),
    "AXVJ": (_B.FLASH_128, _G.RTC, False),
    "AX4J": (_B.FLASH_128, _G.NONE, False),
    "BFTJ": (_B.FLASH_128, _G.NONE, False),
    "BGWJ": (_B.FLASH_128, _G.NONE, False),
    "BKAJ": (_B.FLASH_128, _G.RTC, False),
    "BPEJ": (_B.FLASH_128, _G.RTC, False),
    "BPGJ": (_B.FLASH_128, _G.NONE, False),
    "BPRJ": (_B.FLASH_128, _G.NONE, False),
    "BDKJ": (_B.EEPROM_64, _G.NONE, False),
    "BR4J": (_B.DETECT, _G.RTC, False),
    "FSRJ": (_B.EEPROM_64, _G.NONE, True),
    "FGZJ": (_B.EEPROM_4, _G.NONE, True),
    "FMBJ": (_B.EEPROM_4, _G.NONE, True),
    "FCLJ": (_B.EEPROM_4, _G.NONE, True),
    "FBFJ": (_B.EEPROM_4, _G.NONE, True),
    "FWCJ": (_B.EEPROM_4, _G.NONE, True),
    "FDMJ": (_B.EEPROM_4, _G.NONE, True),
    "FDDJ": (_B.EEPROM_4, _G.NONE, True),
    "FTBJ": (_B.EEPROM_4, _G.NONE, True),
    "FMKJ": (_B.EEPROM_4, _G.NONE, True),
    "FTWJ": (_B.EEPROM_4, _G.NONE, True),
    "FGGJ": (_B.EEPROM_4, _G.NONE, True),
    "FM2J": (_B.EEPROM_4, _G.NONE, True),
    "FNMJ": (_B.EEPROM_4, _G.NONE, True),
    "FMRJ": (_B.EEPROM_64, _G.NONE, True),
    "FPTJ": (_B.EEPROM_64, _G.NONE, True),
    "FLBJ": (_B.EEPROM_64, _G.NONE, True),
    "FFMJ": (_B.EEPROM_4, _G.NONE, True),
    "FTKJ": (_B.EEPROM_4, _G.NONE, True),
    "FTUJ": (_B.EEPROM_4, _G.NONE, True),
    "FADJ": (_B.EEPROM_4, _G.NONE, True),
    "FSDJ": (_B.EEPROM_64, _G.NONE, True),
    "KHPJ": (_B.EEPROM_64, _G.NONE, False),
    "KYGJ": (_B.EEPROM_64, _G.NONE, False),
    "PSAJ": (_B.FLASH_128, _G.NONE, False),
    "U3IJ": (_B.DETECT, _G.RTC, False),
    "U32J": (_B.DETECT, _G.RTC, False),
    "U33J": (_B.DETECT, _G.RTC, False),
    "AXPF": (_B.FLASH_128, _G.RTC, False),
    "AXVF": (_B.FLASH_128, _G.RTC, False),
    "BPEF": (_B.FLASH_128, _G.RTC, False),
    "BPGF": (_B.FLASH_128, _G.NONE, False),
    "BPRF": (_B.FLASH_128, _G.NONE, False),
    "AXPI": (_B.FLASH_128, _G.RTC, False),
    "AXVI": (_B.FLASH_128, _G.RTC, False),
    "BPEI": (_B.FLASH_128, _G.RTC, False),
    "BPGI": (_B.FLASH_128, _G.NONE, False),
    "BPRI": (_B.FLASH_128, _G.NONE, False),
    "AXPD": (_B.FLASH_128, _G.RTC, False),
    "AXVD": (_B.FLASH_128, _G.RTC, False),
    "BPED": (_B.FLASH_128, _G.RTC, False),
    "BPGD": (_B.FLASH_128, _G.NONE, False),
    "BPRD": (_B.FLASH_128, _G.NONE, False),
    "AXPS": (_B.FLASH_128, _G.RTC, False),
    "AXVS": (_B.FLASH_128, _G.RTC, False),
    "BPES": (_B.FLASH_128, _G.RTC, False),
    "BPGS": (_B.FLASH_128, _G.NONE, False),
    "BPRS": (_B.FLASH_128, _G.NONE, False),
    "A9DP": (_B.EEPROM_4, _G.NONE, False),
    "AAOJ": (_B.EEPROM_4, _G.NONE, False),
    "BGDP": (_B.EEPROM_4, _G.NONE, False),
    "BGDE": (_B.EEPROM_4, _G.NONE, False),
    "BJBE": (_B.EEPROM_4, _G.NONE, False),
    "BJBJ": (_B.EEPROM_4, _G.NONE, False),
    "ALUP": (_B.EEPROM_4, _G.NONE, False),
    "ALUE": (_B.EEPROM_4, _G.NONE, False),
    "BL8E": (_B.EEPROM_4, _G.NONE, False),
}

GAME_DB: Mapping[str, GameInfo] = MappingProxyType(
    {code: GameInfo(*fields) for code, fields in _ENTRIES.items()}
)


def lookup_game(code: str | bytes) -> GameInfo:
    """Return the known properties of a game, or defaults if it is unknown."""
    if isinstance(code, (bytes, bytearray)):
        code = bytes(code).decode("latin-1")
    return GAME_DB.get(code, GameInfo())