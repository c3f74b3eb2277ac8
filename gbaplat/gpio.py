"""Cartridge GPIO port with its real-time clock and solar sensor devices."""

from __future__ import annotations

import abc
import enum
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable, Mapping

log = logging.getLogger(__name__)


class PortDirection(enum.IntEnum):
    """Direction of one GPIO pin as seen from the console."""

    IN = 0
    OUT = 1


class GPIODevice(abc.ABC):
    """A device wired to the four GPIO pins."""

    state_key = "device"

    def __init__(self) -> None:
        self.port_directions = 0

    def set_port_directions(self, value: int) -> None:
        self.port_directions = value & 15

    def port_direction(self, pin: int) -> PortDirection:
        return PortDirection((self.port_directions >> pin) & 1)

    @abc.abstractmethod
    def reset(self) -> None:
        """Return the device to its power-on state."""

    @abc.abstractmethod
    def read(self) -> int:
        """Return the pin levels driven by the device."""

    @abc.abstractmethod
    def write(self, value: int) -> None:
        """Receive the pin levels driven by the console."""

    @abc.abstractmethod
    def load_state(self, state: Mapping[str, Any]) -> None:
        """Restore the device from a saved state."""

    @abc.abstractmethod
    def copy_state(self) -> dict[str, Any]:
        """Return the device state as a plain dictionary."""


class GPIO:
    """The GPIO port registers and the devices attached to them."""

    DATA = 0xC4
    DIRECTION = 0xC6
    CONTROL = 0xC8

    def __init__(self) -> None:
        self.devices: list[GPIODevice] = []
        self._device_map: dict[type, GPIODevice] = {}
        self.allow_reads = False
        self.port_data = 0
        self.rd_mask = 0b1111
        self.wr_mask = 0b0000

    def reset(self) -> None:
        self.allow_reads = False
        self.port_data = 0
        self.rd_mask = 0b1111
        self.wr_mask = 0b0000
        for device in self.devices:
            device.reset()
            device.set_port_directions(0)

    def attach(self, device: GPIODevice) -> None:
        self.devices.append(device)
        self._device_map[type(device)] = device

    def get(self, kind: type) -> GPIODevice | None:
        """Return the attached device of the given class, if any."""
        return self._device_map.get(kind)

    def read(self, address: int) -> int:
        if not self.allow_reads:
            return 0
        if address == self.DATA:
            value = 0
            for device in self.devices:
                value |= device.read()
            self.port_data &= self.wr_mask
            self.port_data |= self.rd_mask & value
            return value & 0xFF
        if address == self.DIRECTION:
            return self.rd_mask
        if address == self.CONTROL:
            return 1 if self.allow_reads else 0
        return 0

    def write(self, address: int, value: int) -> None:
        value &= 0xFF
        if address == self.DATA:
            self.port_data &= self.rd_mask
            self.port_data |= self.wr_mask & value
            for device in self.devices:
                device.write(self.port_data)
        elif address == self.DIRECTION:
            value &= 15
            self.rd_mask = ~value & 15
            self.wr_mask = value
            for device in self.devices:
                device.set_port_directions(value)
        elif address == self.CONTROL:
            self.allow_reads = bool(value & 1)

    def load_state(self, state: Mapping[str, Any]) -> None:
        self.allow_reads = bool(state["allow_reads"])
        self.rd_mask = state["rd_mask"]
        self.wr_mask = (~state["rd_mask"]) & 15
        self.port_data = state["port_data"]
        for device in self.devices:
            device.load_state(state[device.state_key])

    def copy_state(self) -> dict[str, Any]:
        state: dict[str, Any] = {
            "allow_reads": self.allow_reads,
            "rd_mask": self.rd_mask,
            "port_data": self.port_data,
        }
        for device in self.devices:
            state[device.state_key] = device.copy_state()
        return state


class _RtcRegister(enum.IntEnum):
    FORCE_RESET = 0
    DATE_TIME = 2
    FORCE_IRQ = 3
    CONTROL = 4
    TIME = 6
    FREE = 7


_ARGUMENT_COUNT = (0, 0, 7, 0, 1, 0, 3, 0)


class _RtcState(enum.IntEnum):
    COMMAND = 0
    RECEIVING = 1
    SENDING = 2
    COMPLETE = 3


@dataclass
class _RtcControl:
    unknown1: bool = False
    per_minute_irq: bool = False
    unknown2: bool = False
    mode_24h: bool = False
    poweroff: bool = False


def _to_bcd(value: int) -> int:
    result = 0
    shift = 0
    while value > 0:
        result |= (value % 10) << shift
        value //= 10
        shift += 4
    return result & 0xFF


class RTC(GPIODevice):
    """Serial real-time clock chip (three-wire interface)."""

    state_key = "rtc"

    SCK = 0
    SIO = 1
    CS = 2

    def __init__(
        self,
        raise_irq: Callable[[], None],
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        super().__init__()
        self._raise_irq = raise_irq
        self._clock = clock
        self.reset()

    def reset(self) -> None:
        self.current_bit = 0
        self.current_byte = 0
        self.data = 0
        self.reg = 0
        self.buffer = [0] * 7
        self.sck = 0
        self.sio = 0
        self.cs = 0
        self.state = _RtcState.COMPLETE
        # Some games refuse to boot unless 24-hour mode is enabled.
        self.control = _RtcControl(mode_24h=True)

    def read(self) -> int:
        return (self.sio & self.cs) << self.SIO

    def write(self, value: int) -> None:
        old_sck = self.sck
        old_cs = self.cs

        if self.port_direction(self.CS) == PortDirection.OUT:
            self.cs = (value >> self.CS) & 1
        else:
            log.error("RTC: CS port should be set to 'output' but configured as 'input'.")

        if self.port_direction(self.SCK) == PortDirection.OUT:
            self.sck = (value >> self.SCK) & 1
        else:
            log.error("RTC: SCK port should be set to 'output' but configured as 'input'.")

        if self.port_direction(self.SIO) == PortDirection.OUT:
            self.sio = (value >> self.SIO) & 1

        if not self.cs:
            return
        if not old_cs:
            self.state = _RtcState.COMMAND
            self.current_bit = 0
            self.current_byte = 0
            return
        if not old_sck and self.sck:
            if self.state == _RtcState.COMMAND:
                self._receive_command()
            elif self.state == _RtcState.RECEIVING:
                self._receive_buffer()
            elif self.state == _RtcState.SENDING:
                self._transmit_buffer()

    def _read_sio(self) -> bool:
        self.data &= ~(1 << self.current_bit) & 0xFF
        self.data |= self.sio << self.current_bit
        self.current_bit += 1
        if self.current_bit == 8:
            self.current_bit = 0
            return True
        return False

    def _receive_command(self) -> None:
        if not self._read_sio():
            return

        data = self.data
        if (data >> 4) == 6:
            data = ((data << 4) | (data >> 4)) & 0xFF
            data = ((data & 0x33) << 2) | ((data & 0xCC) >> 2)
            data = ((data & 0x55) << 1) | ((data & 0xAA) >> 1)
            self.data = data
            log.debug("RTC: received command in REV format, data=0x%X", data)
        elif (data & 15) != 6:
            log.error("RTC: received command in unknown format, data=0x%X", data)
            return

        self.reg = (self.data >> 4) & 7
        self.current_bit = 0
        self.current_byte = 0
        has_arguments = _ARGUMENT_COUNT[self.reg] > 0

        if self.data & 0x80:
            self._read_register()
            self.state = _RtcState.SENDING if has_arguments else _RtcState.COMPLETE
        elif has_arguments:
            self.state = _RtcState.RECEIVING
        else:
            self._write_register()
            self.state = _RtcState.COMPLETE

    def _receive_buffer(self) -> None:
        count = _ARGUMENT_COUNT[self.reg]
        if self.current_byte < count and self._read_sio():
            self.buffer[self.current_byte] = self.data
            self.current_byte += 1
            if self.current_byte == count:
                self._write_register()
                self.state = _RtcState.COMPLETE

    def _transmit_buffer(self) -> None:
        self.sio = self.buffer[self.current_byte] & 1
        self.buffer[self.current_byte] >>= 1
        self.current_bit += 1
        if self.current_bit == 8:
            self.current_bit = 0
            self.current_byte += 1
            if self.current_byte == _ARGUMENT_COUNT[self.reg]:
                self.state = _RtcState.COMPLETE

    def _adjust_hour(self, hour: int) -> int:
        if not self.control.mode_24h and hour >= 12:
            return (hour - 12) | 64
        return hour

    def _read_register(self) -> None:
        if self.reg == _RtcRegister.CONTROL:
            control = self.control
            self.buffer[0] = (
                (2 if control.unknown1 else 0)
                | (8 if control.per_minute_irq else 0)
                | (32 if control.unknown2 else 0)
                | (64 if control.mode_24h else 0)
                | (128 if control.poweroff else 0)
            )
        elif self.reg == _RtcRegister.DATE_TIME:
            now = self._clock()
            fields = (
                now.year - 2000,
                now.month,
                now.day,
                (now.weekday() + 1) % 7,
                self._adjust_hour(now.hour),
                now.minute,
                now.second,
            )
            self.buffer[:7] = [_to_bcd(value) for value in fields]
        elif self.reg == _RtcRegister.TIME:
            now = self._clock()
            fields = (self._adjust_hour(now.hour), now.minute, now.second)
            self.buffer[:3] = [_to_bcd(value) for value in fields]

    def _write_register(self) -> None:
        if self.reg == _RtcRegister.CONTROL:
            value = self.buffer[0]
            self.control.unknown1 = bool(value & 2)
            self.control.per_minute_irq = bool(value & 8)
            self.control.unknown2 = bool(value & 32)
            self.control.mode_24h = bool(value & 64)
            if self.control.per_minute_irq:
                log.error("RTC: enabled the unimplemented per-minute IRQ.")
        elif self.reg == _RtcRegister.FORCE_RESET:
            self.control = _RtcControl()
        elif self.reg == _RtcRegister.FORCE_IRQ:
            self._raise_irq()
        else:
            log.error("RTC: unhandled register write: %d", self.reg)

    def load_state(self, state: Mapping[str, Any]) -> None:
        self.current_bit = state["current_bit"]
        self.current_byte = state["current_byte"]
        self.reg = state["reg"]
        self.data = state["data"]
        self.state = _RtcState(state["state"])
        self.control = _RtcControl(**{k: bool(v) for k, v in state["control"].items()})
        self.buffer = list(state["buffer"])

    def copy_state(self) -> dict[str, Any]:
        return {
            "current_bit": self.current_bit,
            "current_byte": self.current_byte,
            "reg": self.reg,
            "data": self.data,
            "state": int(self.state),
            "control": asdict(self.control),
            "buffer": list(self.buffer),
        }


class SolarSensor(GPIODevice):
    """Light sensor read by counting clock pulses until a flag trips."""

    state_key = "solar_sensor"

    CLK = 0
    RST = 1
    CS = 2
    FLG = 3

    def __init__(self) -> None:
        super().__init__()
        self.reset()

    def reset(self) -> None:
        self.old_clk = False
        self.counter = 0
        self.set_light_level(0x60)

    def read(self) -> int:
        return (1 << self.FLG) if self.counter > self.current_level else 0

    def write(self, value: int) -> None:
        clk = bool(value & (1 << self.CLK)) and self.port_direction(self.CLK) == PortDirection.OUT
        rst = bool(value & (1 << self.RST)) and self.port_direction(self.RST) == PortDirection.OUT

        if rst:
            self.counter = 0
        elif self.old_clk and not clk:
            self.counter = (self.counter + 1) & 0xFF

        self.old_clk = clk

    def set_light_level(self, level: int) -> None:
        self.current_level = 255 - (level & 0xFF)

    def load_state(self, state: Mapping[str, Any]) -> None:
        self.old_clk = bool(state["old_clk"])
        self.counter = state["counter"]

    def copy_state(self) -> dict[str, Any]:
        return {"old_clk": self.old_clk, "counter": self.counter}