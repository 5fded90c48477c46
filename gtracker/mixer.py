"""Drives the player and a SID emulation to produce audio samples."""

from __future__ import annotations

from typing import Protocol, Sequence

from gtracker.player import REGISTER_COUNT, Player

MIXRATE = 44100
CLOCKRATE_PAL = 985248
WRITE_CYCLES = 14


class SidChip(Protocol):
    """The part of a SID emulation the mixer needs."""

    def set_reg(self, reg: int, value: int) -> None: ...

    def clock(self, cycles: int, max_samples: int) -> Sequence[int]: ...


class Mixer:
    """Feeds player register values to the SID with realistic write timing."""

    def __init__(self, player: Player, sid: SidChip, clock_rate: int = CLOCKRATE_PAL) -> None:
        self._player = player
        self._sid = sid
        self._clock_rate = clock_rate
        self._cycles_to_next_write = 0
        self._reg = 0

    def mix(self, length: int) -> list[int]:
        """Render `length` mono samples."""
        if length < 0:
            raise ValueError(f"negative length: {length}")
        song = self._player.song
        ticks_per_second = song.multiplier * 50 or 25
        wait_cycles = (
            self._clock_rate // ticks_per_second - WRITE_CYCLES * (REGISTER_COUNT - 1)
        )
        reverse = song.adparam < 0xF000
        cycles_left = length * self._clock_rate // MIXRATE

        samples: list[int] = []
        while cycles_left > 0:
            if self._cycles_to_next_write == 0:
                if self._reg == 0:
                    self._player.play_routine()
                r = REGISTER_COUNT - 1 - self._reg if reverse else self._reg
                self._sid.set_reg(r, self._player.registers[r])
                self._reg += 1
                if self._reg >= REGISTER_COUNT:
                    self._reg = 0
                    self._cycles_to_next_write = wait_cycles
                else:
                    self._cycles_to_next_write = WRITE_CYCLES
            c = min(cycles_left, self._cycles_to_next_write)
            cycles_left -= c
            self._cycles_to_next_write -= c
            samples.extend(self._sid.clock(c, length - len(samples)))

        remaining = length - len(samples)
        if remaining > 1:
            raise RuntimeError(f"SID rendered too few samples: {remaining} missing")
        if remaining > 0:
            samples.extend(self._sid.clock(9999, remaining))
        return samples