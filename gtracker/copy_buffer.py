"""Copying an instrument, together with its table parts, from one slot to another."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field

from gtracker.instrument_tables import JUMP, delete_table_row, table_share_count
from gtracker.song import (
    FTBL,
    MAX_INSTR,
    MAX_TABLELEN,
    MAX_TABLES,
    STBL,
    WTBL,
    Instrument,
    Song,
)

logger = logging.getLogger(__name__)


def _check_instr(instr_num: int) -> None:
    if not 0 <= instr_num < MAX_INSTR:
        raise ValueError(f"instrument out of range: {instr_num}")


@dataclass
class InstrumentCopyBuffer:
    """A snapshot of one instrument and of all song tables at the time of copying."""

    instr_num: int = 0
    instr: Instrument = field(default_factory=Instrument)
    ltable: list[bytes] = field(default_factory=lambda: [bytes(MAX_TABLELEN)] * MAX_TABLES)
    rtable: list[bytes] = field(default_factory=lambda: [bytes(MAX_TABLELEN)] * MAX_TABLES)

    @classmethod
    def copy(cls, song: Song, instr_num: int) -> InstrumentCopyBuffer:
        """Take a snapshot of instrument `instr_num` and the song's tables."""
        _check_instr(instr_num)
        return cls(
            instr_num=instr_num,
            instr=copy.deepcopy(song.instruments[instr_num]),
            ltable=[bytes(t) for t in song.ltable],
            rtable=[bytes(t) for t in song.rtable],
        )

    def paste(self, song: Song, instr_num: int) -> None:
        """Write the buffered instrument into slot `instr_num` of `song`.

        The target's own table parts are removed when no other instrument
        shares them. A table part identical to the one of the original
        instrument is shared rather than duplicated; otherwise it is appended
        after the used part of the table. When a table has no room left the
        target's pointer into it is cleared.
        """
        _check_instr(instr_num)
        dst = song.instruments[instr_num]

        for t in range(WTBL, FTBL + 1):
            self._paste_table(song, instr_num, dst, t)

        di = dst.ptr[STBL] - 1
        if di >= 0:
            song.ltable[STBL][di] = 0
            song.rtable[STBL][di] = 0
            if self.instr.ptr[STBL] > 0:
                si = self.instr.ptr[STBL] - 1
                song.ltable[STBL][di] = self.ltable[STBL][si]
                song.rtable[STBL][di] = self.rtable[STBL][si]

        dst.ad = self.instr.ad
        dst.sr = self.instr.sr
        dst.firstwave = self.instr.firstwave
        dst.gatetimer = self.instr.gatetimer
        dst.vibdelay = self.instr.vibdelay
        dst.name = self.instr.name

    def _paste_table(self, song: Song, instr_num: int, dst: Instrument, t: int) -> None:
        src_lt, src_rt = self.ltable[t], self.rtable[t]
        dst_lt, dst_rt = song.ltable[t], song.rtable[t]

        # remove the target's table part if nobody else uses it
        if table_share_count(song, instr_num, t) == 1:
            start = dst.ptr[t] - 1
            for _ in range(MAX_TABLELEN):
                value = dst_lt[start]
                delete_table_row(song, t, start)
                if value == JUMP:
                    break

        if self.instr.ptr[t] == 0:
            dst.ptr[t] = 0
            return

        if self._can_borrow(song, instr_num, t):
            dst.ptr[t] = self.instr.ptr[t]
            return

        start_row = self.instr.ptr[t] - 1
        end_row = next(
            (i for i in range(start_row, MAX_TABLELEN) if src_lt[i] == JUMP), None
        )
        if end_row is None:
            raise ValueError(f"table {t} part has no jump row")

        new_start_row = song.table_length(t)
        if end_row - start_row + 1 > MAX_TABLELEN - new_start_row:
            logger.warning("paste: not enough space in table %d", t)
            dst.ptr[t] = 0
            return

        count = end_row - start_row + 1
        dst.ptr[t] = new_start_row + 1
        dst_lt[new_start_row:new_start_row + count] = src_lt[start_row:end_row + 1]
        dst_rt[new_start_row:new_start_row + count] = src_rt[start_row:end_row + 1]

        last = new_start_row + count - 1
        if dst_rt[last] > 0:
            dst_rt[last] = (dst_rt[last] - start_row + new_start_row) & 0xFF

    def _can_borrow(self, song: Song, instr_num: int, t: int) -> bool:
        if not (self.instr_num > 0 and self.instr_num != instr_num):
            return False
        orig = song.instruments[self.instr_num]
        if orig.ptr[t] == 0:
            return False
        src_lt, src_rt = self.ltable[t], self.rtable[t]
        dst_lt, dst_rt = song.ltable[t], song.rtable[t]
        i = orig.ptr[t] - 1
        j = self.instr.ptr[t] - 1
        while i < MAX_TABLELEN and j < MAX_TABLELEN:
            if dst_lt[i] != src_lt[j]:
                return False
            if dst_lt[i] == JUMP and dst_rt[i] - i == src_rt[j] - j:
                break
            if dst_rt[i] != src_rt[j]:
                return False
            i += 1
            j += 1
        return True