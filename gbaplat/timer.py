"""The four cascadable hardware timers."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Iterable, Protocol

_TICKS_SHIFT = (0, 6, 8, 10)
_TICKS_MASK = (0, 0x3F, 0xFF, 0x3FF)

_REG_TMXCNT_L = 0
_REG_TMXCNT_H = 2

_PRIORITY_OVERFLOW = 0
_PRIORITY_WRITE_RELOAD = 1
_PRIORITY_WRITE_CONTROL = 2


class _Scheduler(Protocol):
    now: int

    def add(self, delay: int, callback: Callable[[], None], priority: int) -> Any: ...

    def cancel(self, event: Any) -> None: ...

    def get_event_uid(self, event: Any) -> int: ...

    def get_event_by_uid(self, uid: int) -> Any: ...


@dataclass
class _Control:
    frequency: int = 0
    cascade: bool = False
    interrupt: bool = False
    enable: bool = False

    @property
    def value(self) -> int:
        return (
            self.frequency
            | (4 if self.cascade else 0)
            | (64 if self.interrupt else 0)
            | (128 if self.enable else 0)
        )


@dataclass
class _Channel:
    id: int
    reload: int = 0
    counter: int = 0
    pending_reload: int = 0
    pending_control: int = 0
    control: _Control = field(default_factory=_Control)
    running: bool = False
    shift: int = 0
    mask: int = 0
    timestamp_started: int = 0
    event_overflow: Any = None


@dataclass
class TimerChannelState:
    """Saved state of one timer channel."""

    counter: int = 0
    reload: int = 0
    control: int = 0
    pending_reload: int = 0
    pending_control: int = 0
    event_uid: int = 0


class Timer:
    """Timers 0 to 3, driven by events on a cycle scheduler.

    The scheduler provides ``now`` (the current cycle), ``add(delay, callback,
    priority)`` returning an event, ``cancel(event)``, ``get_event_uid(event)``
    and ``get_event_by_uid(uid)``.
    """

    def __init__(
        self,
        scheduler: _Scheduler,
        raise_irq: Callable[[int], None],
        apu_overflow: Callable[[int, int], None] | None = None,
    ) -> None:
        self.scheduler = scheduler
        self._raise_irq = raise_irq
        self._apu_overflow = apu_overflow or (lambda chan_id, times: None)
        self.channels: list[_Channel] = []
        self.reset()

    def reset(self) -> None:
        self.channels = [_Channel(id=chan_id) for chan_id in range(4)]

    def read_byte(self, chan_id: int, offset: int) -> int:
        channel = self.channels[chan_id]
        if offset == _REG_TMXCNT_L:
            return self._read_counter(channel) & 0xFF
        if offset == _REG_TMXCNT_L | 1:
            return self._read_counter(channel) >> 8
        if offset == _REG_TMXCNT_H:
            return channel.control.value & 0xFF
        return 0

    def read_half(self, chan_id: int, offset: int) -> int:
        channel = self.channels[chan_id]
        if offset == _REG_TMXCNT_L:
            return self._read_counter(channel)
        if offset == _REG_TMXCNT_H:
            return channel.control.value
        return 0

    def read_word(self, chan_id: int) -> int:
        channel = self.channels[chan_id]
        return (channel.control.value << 16) | self._read_counter(channel)

    def write_byte(self, chan_id: int, offset: int, value: int) -> None:
        channel = self.channels[chan_id]
        value &= 0xFF
        if offset == _REG_TMXCNT_L:
            self._write_reload(channel, (channel.pending_reload & 0xFF00) | value)
        elif offset == _REG_TMXCNT_L | 1:
            self._write_reload(channel, (channel.pending_reload & 0x00FF) | (value << 8))
        elif offset == _REG_TMXCNT_H:
            self._write_control(channel, value)

    def write_half(self, chan_id: int, offset: int, value: int) -> None:
        channel = self.channels[chan_id]
        value &= 0xFFFF
        if offset == _REG_TMXCNT_L:
            self._write_reload(channel, value)
        elif offset == _REG_TMXCNT_H:
            self._write_control(channel, value)

    def write_word(self, chan_id: int, value: int) -> None:
        channel = self.channels[chan_id]
        self._write_reload(channel, value & 0xFFFF)
        self._write_control(channel, (value >> 16) & 0xFFFF)

    def _read_counter(self, channel: _Channel) -> int:
        counter = channel.counter
        # A running timer has ticked since its counter was last stored.
        if channel.running:
            counter += self._delta_since_last_update(channel)
        return counter & 0xFFFF

    def _write_reload(self, channel: _Channel, value: int) -> None:
        channel.pending_reload = value
        self.scheduler.add(
            1, partial(self._on_reload_written, channel.id), _PRIORITY_WRITE_RELOAD
        )

    def _write_control(self, channel: _Channel, value: int) -> None:
        channel.pending_control = value
        self.scheduler.add(
            1, partial(self._on_control_written, channel.id), _PRIORITY_WRITE_CONTROL
        )

    def _on_reload_written(self, chan_id: int) -> None:
        channel = self.channels[chan_id]
        channel.reload = channel.pending_reload

    def _on_control_written(self, chan_id: int) -> None:
        channel = self.channels[chan_id]
        control = channel.control
        enable_previous = control.enable
        value = channel.pending_control

        if channel.running:
            self._stop_channel(channel)

        control.frequency = value & 3
        control.interrupt = bool(value & 64)
        control.enable = bool(value & 128)
        if channel.id != 0:
            control.cascade = bool(value & 4)

        channel.shift = _TICKS_SHIFT[control.frequency]
        channel.mask = _TICKS_MASK[control.frequency]

        if not control.enable:
            return

        prescaler_offset = self.scheduler.now & channel.mask

        if enable_previous:
            if not control.cascade:
                self._start_channel(channel, prescaler_offset)
        elif control.cascade:
            channel.counter = channel.reload
        elif channel.counter == 0xFFFF and prescaler_offset == 0:
            # Loading the reload value takes a cycle, during which the
            # counter may still tick and overflow.
            self._start_channel(channel, 0)
        else:
            channel.counter = channel.reload
            self._start_channel(channel, prescaler_offset - 1)

    def _delta_since_last_update(self, channel: _Channel) -> int:
        return (self.scheduler.now - channel.timestamp_started) >> channel.shift

    def _start_channel(self, channel: _Channel, cycle_offset: int) -> None:
        cycles = ((0x10000 - channel.counter) << channel.shift) - cycle_offset
        channel.running = True
        channel.timestamp_started = self.scheduler.now - cycle_offset
        channel.event_overflow = self.scheduler.add(
            cycles, partial(self._on_overflow, channel.id), _PRIORITY_OVERFLOW
        )

    def _stop_channel(self, channel: _Channel) -> None:
        channel.counter += self._delta_since_last_update(channel)
        if channel.counter >= 0x10000:
            self._reload_cascade_and_request_irq(channel)
        self.scheduler.cancel(channel.event_overflow)
        channel.event_overflow = None
        channel.running = False

    def _reload_cascade_and_request_irq(self, channel: _Channel) -> None:
        channel.counter = channel.reload

        if channel.control.interrupt:
            self._raise_irq(channel.id)

        if channel.id <= 1:
            self._apu_overflow(channel.id, 1)

        if channel.id != 3:
            following = self.channels[channel.id + 1]
            if following.control.enable and following.control.cascade:
                following.counter += 1
                if following.counter == 0x10000:
                    self._reload_cascade_and_request_irq(following)

    def _on_overflow(self, chan_id: int) -> None:
        channel = self.channels[chan_id]
        self._reload_cascade_and_request_irq(channel)
        self._start_channel(channel, 0)

    def load_state(self, states: Iterable[TimerChannelState]) -> None:
        states = list(states)
        if len(states) != len(self.channels):
            raise ValueError(f"expected {len(self.channels)} timer states, got {len(states)}")
        for channel, saved in zip(self.channels, states):
            control = saved.control
            channel.reload = saved.reload
            channel.counter = saved.counter
            channel.control = _Control(
                frequency=control & 3,
                cascade=bool(control & 4),
                interrupt=bool(control & 64),
                enable=bool(control & 128),
            )
            channel.shift = _TICKS_SHIFT[channel.control.frequency]
            channel.mask = _TICKS_MASK[channel.control.frequency]
            channel.running = False
            channel.event_overflow = self.scheduler.get_event_by_uid(saved.event_uid)
            channel.pending_reload = saved.pending_reload
            channel.pending_control = saved.pending_control

    def copy_state(self) -> list[TimerChannelState]:
        return [
            TimerChannelState(
                counter=self._read_counter(channel),
                reload=channel.reload,
                control=channel.control.value,
                pending_reload=channel.pending_reload,
                pending_control=channel.pending_control,
                event_uid=self.scheduler.get_event_uid(channel.event_overflow),
            )
            for channel in self.channels
        ]