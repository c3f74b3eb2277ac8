"""Platform components for a Game Boy Advance emulator: game database, configuration,
frame pacing, cartridge save memory, GPIO devices, timers, and ROM and BIOS loading."""

__version__ = "0.1.0"