# gbaplat

Building blocks for the platform side of a Game Boy Advance emulator, in pure
Python. The only dependency is `tomlkit`.

## Modules

- `gbaplat.game_db`: a table of known cartridges keyed by their four-character
  game code. `lookup_game(code)` takes a `str` or `bytes` code and returns a
  `GameInfo` with `backup_type` (`BackupType`), `gpio` (`GPIODeviceType`
  flags: `RTC`, `SOLAR_SENSOR`) and `mirror`. Unknown codes give a default
  `GameInfo` (backup type `DETECT`, no GPIO devices, no mirroring). The full
  table is `GAME_DB`, a read-only mapping.
- `gbaplat.frame_limiter`: `FrameLimiter(fps=60.0)` paces frames to a target
  rate. `run(frame_advance, update_fps)` runs one frame, calls `update_fps`
  with the measured rate about once a second, and then sleeps until the next
  frame is due. Setting `fast_forward` to `True` skips the waiting.
  `reset(fps)` restarts timing. The clock and sleep functions can be passed
  in as keyword arguments.
- `gbaplat.emulator_thread`: `EmulatorThread(core)` calls
  `core.run_for_one_frame()` on a daemon thread, paced at 59.7275 frames per
  second. It has `start()`, `stop()`, a `paused` flag, a `fast_forward`
  property, and the callbacks `per_frame_callback()` and
  `frame_rate_callback(fps)`. While paused, the reported rate is 0. It can
  also be used as a context manager.
- `gbaplat.config`: `PlatformConfig` is a dataclass of settings. It holds the
  BIOS path, BIOS skip and save folder, plus `cartridge` (`CartridgeConfig`),
  `video` (`VideoConfig` with `VideoFilter` and `ColorCorrection`) and
  `audio` (`AudioConfig` with `Interpolation`).
  - `load(path)` reads a TOML file. If the file is missing, it writes one with
    the current values instead. Invalid files are logged and ignored.
  - `save(path)` updates the file and keeps comments and unknown keys that are
    already in it.
  - Subclasses can override `load_custom_data` and `save_custom_data`.
- `gbaplat.backup`: cartridge save memory kept in a file.
  - `open_backup_file(path, sizes, size)` opens an existing file of one of the
    allowed sizes, or creates a new file of `size` bytes filled with `0xFF`.
    It returns a `BackupFile`, which writes every change straight to disk.
  - `Sram` is 32 KiB.
  - `Flash` is 64 or 128 KiB (`FlashSize`). It implements the command
    protocol: chip ID, chip and sector erase, byte write and bank select.
  - `Eeprom` is 512 bytes or 8 KiB (`EepromSize`, including `DETECT`). It is
    accessed serially. After a write it is busy until
    `on_ready_after_write()` is called. To arrange that call it uses the
    `schedule(delay_cycles, callback)` function it is given.
  - All three have `read`, `write`, `reset`, `load_state(dict)`,
    `copy_state() -> dict`, `close()`, and can be used as context managers.
- `gbaplat.gpio`: the cartridge GPIO port.
  - `GPIO` handles the data, direction and control registers at `0xC4`,
    `0xC6` and `0xC8`. It forwards to the attached devices.
  - `RTC(raise_irq, clock=datetime.now)` is the serial real-time clock. It
    answers control, date-time and time reads in BCD, and supports control
    writes, force-reset and force-IRQ.
  - `SolarSensor` is the light sensor. Set the level with
    `set_light_level(level)`.
  - Every part has `load_state` and `copy_state`, which use plain
    dictionaries.
- `gbaplat.timer`: `Timer(scheduler, raise_irq, apu_overflow=None)` models the
  four hardware timers, with prescalers, cascading, overflow interrupts and
  the one-cycle delay on register writes.
  - Register access is through `read_byte`, `read_half`, `read_word`,
    `write_byte`, `write_half` and `write_word`.
  - The scheduler must provide:
    - `now`
    - `add(delay, callback, priority)`
    - `cancel(event)`
    - `get_event_uid(event)`
    - `get_event_by_uid(uid)`
  - State is saved and restored as four `TimerChannelState` objects.
- `gbaplat.rom_loader`: loading a cartridge.
  - `read_rom_file(path)` reads a plain image, or the first `.gba`/`.GBA`
    file inside a zip or tar archive.
  - `load_rom(rom_path, save_path=None, backup_type=BackupType.DETECT,
    force_gpio=GPIODeviceType.NONE, schedule=None, raise_irq=None)` checks
    the size (between the 0xC0-byte header and 32 MiB).
  - `load_rom` finds the backup type from the game database, or else from
    the save-library signatures in the ROM (`detect_backup_type`), falling
    back to SRAM. It then creates the save memory (by default next to the ROM
    with a `.sav` extension) and the GPIO devices.
  - It returns a `LoadedROM` with `data`, `backup`, `gpio`, `rom_mask`,
    `backup_type` and `game_info`.
  - EEPROM backups need `schedule`; without it, `create_backup` raises
    `ValueError`.
  - Other helpers are `game_info_for(data)` and `round_to_power_of_two(size)`.
- `gbaplat.bios_loader`: `load_bios(path)` returns the bytes of a BIOS image
  that must be exactly 16 KiB.

Loading failures raise subclasses of `LoaderError`: `CannotFindFileError`,
`CannotOpenFileError` or `BadImageError`.

## Example

```python
from gbaplat.game_db import lookup_game, BackupType
from gbaplat.config import PlatformConfig
from gbaplat.bios_loader import load_bios

info = lookup_game("BPEE")
assert info.backup_type is BackupType.FLASH_128

config = PlatformConfig()
config.load("config.toml")   # written with the current values if missing
bios = load_bios(config.bios_path)
```

## What it does not do

This package has no CPU, graphics, sound, DMA or interrupt controller
emulation. It does not draw video or play audio, and it has no save-state
file format. It also has no command-line program or user interface. The
core passed to `EmulatorThread`, the scheduler used by `Timer` and `Eeprom`,
and the interrupt callbacks must come from the application that uses it.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```