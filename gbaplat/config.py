"""Platform configuration stored in a TOML file."""

from __future__ import annotations

import enum
import logging
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import TOMLKitError

from gbaplat.game_db import BackupType

log = logging.getLogger(__name__)


class VideoFilter(enum.Enum):
    """Texture filter used when scaling the picture."""

    NEAREST = "nearest"
    LINEAR = "linear"
    SHARP = "sharp"
    XBRZ = "xbrz"


class ColorCorrection(enum.Enum):
    """Colour correction applied to the LCD output."""

    NONE = "none"
    HIGAN = "higan"
    AGB = "agb"


class Interpolation(enum.Enum):
    """Audio resampling algorithm."""

    COSINE = "cosine"
    CUBIC = "cubic"
    SINC_64 = "sinc64"
    SINC_128 = "sinc128"
    SINC_256 = "sinc256"


_SAVE_TYPES: dict[str, BackupType] = {
    "detect": BackupType.DETECT,
    "none": BackupType.NONE,
    "sram": BackupType.SRAM,
    "flash64": BackupType.FLASH_64,
    "flash128": BackupType.FLASH_128,
    "eeprom512": BackupType.EEPROM_4,
    "eeprom8192": BackupType.EEPROM_64,
}
_SAVE_TYPE_NAMES = {kind: name for name, kind in _SAVE_TYPES.items()}


@dataclass
class CartridgeConfig:
    backup_type: BackupType = BackupType.DETECT
    force_rtc: bool = True
    force_solar_sensor: bool = False
    solar_sensor_level: int = 23


@dataclass
class VideoConfig:
    filter: VideoFilter = VideoFilter.LINEAR
    color: ColorCorrection = ColorCorrection.AGB
    lcd_ghosting: bool = True


@dataclass
class AudioConfig:
    interpolation: Interpolation = Interpolation.COSINE
    volume: int = 100
    mp2k_hle_enable: bool = False
    mp2k_hle_cubic: bool = True
    mp2k_hle_force_reverb: bool = True


def _find(table: Any, key: str, kind: type, default: Any) -> Any:
    """Return table[key] if present and of the wanted kind, else the default."""
    if not isinstance(table, Mapping) or key not in table:
        return default
    value = table[key]
    if kind is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    else:
        ok = isinstance(value, kind)
    return value if ok else default


def _section(doc: MutableMapping, name: str) -> MutableMapping:
    if not isinstance(doc.get(name), MutableMapping):
        doc[name] = tomlkit.table()
    return doc[name]


@dataclass
class PlatformConfig:
    """Settings for the emulator front end."""

    bios_path: str = "bios.bin"
    skip_bios: bool = False
    save_folder: str = ""
    cartridge: CartridgeConfig = field(default_factory=CartridgeConfig)
    video: VideoConfig = field(default_factory=VideoConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)

    def load(self, path: str | Path) -> None:
        """Read settings from a file, creating it from the current values if missing."""
        path = Path(path)
        if not path.exists():
            self.save(path)
            return

        try:
            data = tomlkit.parse(path.read_text(encoding="utf-8")).unwrap()
        except (OSError, UnicodeDecodeError, TOMLKitError) as ex:
            log.error("Config: error while parsing TOML configuration: %s", ex)
            return

        if "general" in data:
            general = data["general"]
            self.bios_path = _find(general, "bios_path", str, "bios.bin")
            self.skip_bios = _find(general, "bios_skip", bool, False)
            self.save_folder = _find(general, "save_folder", str, "")

        if "cartridge" in data:
            cartridge = data["cartridge"]
            save_type = _find(cartridge, "save_type", str, "detect")
            if save_type in _SAVE_TYPES:
                self.cartridge.backup_type = _SAVE_TYPES[save_type]
            else:
                log.warning(
                    "Config: backup type '%s' is not valid, defaulting to auto-detect.",
                    save_type,
                )
                self.cartridge.backup_type = BackupType.DETECT
            self.cartridge.force_rtc = _find(cartridge, "force_rtc", bool, False)
            self.cartridge.force_solar_sensor = _find(
                cartridge, "force_solar_sensor", bool, False
            )
            self.cartridge.solar_sensor_level = (
                _find(cartridge, "solar_sensor_level", int, 156) & 0xFF
            )

        if "video" in data:
            video = data["video"]
            filter_name = _find(video, "filter", str, "nearest")
            try:
                self.video.filter = VideoFilter(filter_name)
            except ValueError:
                pass
            color_name = _find(video, "color_correction", str, "ags")
            try:
                self.video.color = ColorCorrection(color_name)
            except ValueError:
                pass
            self.video.lcd_ghosting = _find(video, "lcd_ghosting", bool, True)

        if "audio" in data:
            audio = data["audio"]
            resampler = _find(audio, "resampler", str, "cosine")
            try:
                self.audio.interpolation = Interpolation(resampler)
            except ValueError:
                log.warning(
                    "Config: unknown resampling algorithm: %s (defaulting to cosine).",
                    resampler,
                )
                self.audio.interpolation = Interpolation.COSINE
            self.audio.volume = _find(audio, "volume", int, 100)
            self.audio.mp2k_hle_enable = _find(audio, "mp2k_hle_enable", bool, False)
            self.audio.mp2k_hle_cubic = _find(audio, "mp2k_hle_cubic", bool, True)
            self.audio.mp2k_hle_force_reverb = _find(
                audio, "mp2k_hle_force_reverb", bool, True
            )

        self.load_custom_data(data)

    def save(self, path: str | Path) -> None:
        """Write settings to a file, keeping comments and unknown keys already there."""
        path = Path(path)
        doc: Any = tomlkit.document()
        if path.exists():
            try:
                doc = tomlkit.parse(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, TOMLKitError) as ex:
                log.error("Config: error while parsing TOML configuration: %s", ex)
                return

        general = _section(doc, "general")
        general["bios_path"] = self.bios_path
        general["bios_skip"] = self.skip_bios
        general["save_folder"] = self.save_folder

        cartridge = _section(doc, "cartridge")
        cartridge["save_type"] = _SAVE_TYPE_NAMES.get(self.cartridge.backup_type, "")
        cartridge["force_rtc"] = self.cartridge.force_rtc
        cartridge["force_solar_sensor"] = self.cartridge.force_solar_sensor
        cartridge["solar_sensor_level"] = self.cartridge.solar_sensor_level

        video = _section(doc, "video")
        video["filter"] = self.video.filter.value
        video["color_correction"] = self.video.color.value
        video["lcd_ghosting"] = self.video.lcd_ghosting

        audio = _section(doc, "audio")
        audio["resampler"] = self.audio.interpolation.value
        audio["volume"] = self.audio.volume
        audio["mp2k_hle_enable"] = self.audio.mp2k_hle_enable
        audio["mp2k_hle_cubic"] = self.audio.mp2k_hle_cubic
        audio["mp2k_hle_force_reverb"] = self.audio.mp2k_hle_force_reverb

        self.save_custom_data(doc)

        path.write_text(tomlkit.dumps(doc), encoding="utf-8")

    def load_custom_data(self, data: Mapping[str, Any]) -> None:
        """Hook for subclasses to read extra settings."""

    def save_custom_data(self, data: MutableMapping[str, Any]) -> None:
        """Hook for subclasses to write extra settings."""