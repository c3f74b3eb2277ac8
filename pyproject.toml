[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gbaplat"
version = "0.1.0"
description = "Platform layer for a Game Boy Advance emulator: game database, configuration, frame pacing, cartridge save memory and GPIO devices, timers, ROM and BIOS loading"
requires-python = ">=3.10"
keywords = ["gba", "emulator", "game boy advance", "eeprom", "flash", "sram", "rtc", "rom"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
]
dependencies = [
    "tomlkit",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["gbaplat"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
