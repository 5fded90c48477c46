"""Song data model and the GTS5 song file format."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Iterator

logger = logging.getLogger(__name__)

CMD_DONOTHING = 0
CMD_PORTAUP = 1
CMD_PORTADOWN = 2
CMD_TONEPORTA = 3
CMD_VIBRATO = 4
CMD_SETAD = 5
CMD_SETSR = 6
CMD_SETWAVE = 7
CMD_SETWAVEPTR = 8
CMD_SETPULSEPTR = 9
CMD_SETFILTERPTR = 10
CMD_SETFILTERCTRL = 11
CMD_SETFILTERCUTOFF = 12
CMD_SETMASTERVOL = 13
CMD_FUNKTEMPO = 14
CMD_SETTEMPO = 15

WTBL = 0
PTBL = 1
FTBL = 2
STBL = 3

MAX_STR = 32
MAX_INSTR = 64
MAX_CHN = 3
MAX_PATT = 208
MAX_TABLES = 4
MAX_TABLELEN = 255

MAX_INSTRNAMELEN = 16
MAX_PATTROWS = 128
MAX_SONGLEN = 254
MAX_SONG_ROWS = MAX_SONGLEN // 2
MAX_NOTES = 96

REPEAT = 0xD0
TRANSDOWN = 0xE0
TRANSUP = 0xF0
LOOPSONG = 0xFF

ENDPATT = 0xFF
FX = 0x40
FXONLY = 0x50
FIRSTNOTE = 0x60
LASTNOTE = 0xBC
REST = 0xBD
KEYOFF = 0xBE
KEYON = 0xBF

WAVEDELAY = 0x1
WAVELASTDELAY = 0xF
WAVESILENT = 0xE0
WAVELASTSILENT = 0xEF
WAVECMD = 0xF0
WAVELASTCMD = 0xFE

SONG_IDENT = b"GTS5"
EXTRA_IDENT = b"GTM "
INSTRUMENT_SIZE = 9 + MAX_INSTRNAMELEN

_TABLE_PTR_LABELS = ("WAVE", "PULS", "FILT")


def _encode_str(text: str, size: int) -> bytes:
    return text.encode("latin-1", errors="replace")[:size].ljust(size, b"\0")


def _decode_str(data: bytes) -> str:
    return data.split(b"\0", 1)[0].decode("latin-1")


class Model(enum.IntEnum):
    """SID chip model."""

    MOS6581 = 0
    MOS8580 = 1


class LoadError(Exception):
    """Raised when a song file cannot be loaded."""

    def __init__(self, msg: str) -> None:
        super().__init__(msg)
        self.msg = msg


def _load_error(msg: str) -> LoadError:
    logger.error("song load: %s", msg)
    return LoadError(msg)


@dataclass
class Instrument:
    """One instrument: envelope, table pointers and name."""

    ad: int = 0
    sr: int = 0
    ptr: list[int] = field(default_factory=lambda: [0] * MAX_TABLES)
    vibdelay: int = 0
    gatetimer: int = 2
    firstwave: int = 0x09
    name: str = ""

    def to_bytes(self) -> bytes:
        """Serialise to the 25-byte on-disk record."""
        head = bytes([self.ad, self.sr, *self.ptr, self.vibdelay, self.gatetimer, self.firstwave])
        return head + _encode_str(self.name, MAX_INSTRNAMELEN)

    @classmethod
    def from_bytes(cls, data: bytes) -> Instrument:
        """Parse a 25-byte on-disk record."""
        if len(data) != INSTRUMENT_SIZE:
            raise ValueError(f"instrument record must be {INSTRUMENT_SIZE} bytes")
        return cls(
            ad=data[0],
            sr=data[1],
            ptr=list(data[2:6]),
            vibdelay=data[6],
            gatetimer=data[7],
            firstwave=data[8],
            name=_decode_str(data[9:]),
        )


@dataclass
class OrderRow:
    """One entry of a channel's order list."""

    trans: int = 0
    pattnum: int = 0


@dataclass
class PatternRow:
    """One row of a pattern."""

    note: int = REST
    instr: int = 0
    command: int = 0
    data: int = 0


@dataclass
class Pattern:
    """A pattern of up to MAX_PATTROWS rows."""

    rows: list[PatternRow] = field(
        default_factory=lambda: [PatternRow() for _ in range(MAX_PATTROWS)]
    )
    length: int = 32


class _Reader:
    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def bytes(self, count: int) -> bytes:
        data = self._stream.read(count)
        if len(data) != count:
            raise _load_error("unexpected end of file")
        return data

    def byte(self) -> int:
        return self.bytes(1)[0]

    def optional(self, count: int) -> bytes:
        return self._stream.read(count)


def _next_item(items: Iterator[tuple[int, int]]) -> tuple[int, int]:
    try:
        return next(items)
    except StopIteration:
        raise _load_error("bad song order list") from None


class Song:
    """A complete song. A new song is in the cleared state."""

    def __init__(self) -> None:
        self.clear()

    def clear(self) -> None:
        """Reset to an empty song with default order list and vibrato pointers."""
        self.instruments: list[Instrument] = [Instrument() for _ in range(MAX_INSTR)]
        self.ltable: list[bytearray] = [bytearray(MAX_TABLELEN) for _ in range(MAX_TABLES)]
        self.rtable: list[bytearray] = [bytearray(MAX_TABLELEN) for _ in range(MAX_TABLES)]
        self.song_order: list[list[OrderRow]] = [
            [OrderRow() for _ in range(MAX_SONG_ROWS)] for _ in range(MAX_CHN)
        ]
        self.patterns: list[Pattern] = [Pattern() for _ in range(MAX_PATT)]
        self.song_len = 1
        self.song_loop = 0
        self.song_name = ""
        self.author_name = ""
        self.copyright_name = ""
        self.adparam = 0x0F00
        self.multiplier = 1
        self.model = Model.MOS8580

        self.song_order[1][0].pattnum = 1
        self.song_order[2][0].pattnum = 2
        for i, instr in enumerate(self.instruments[1:], start=1):
            instr.ptr[STBL] = 0x80 + i

    # ------------------------------------------------------------------ tables

    def table_length(self, table: int) -> int:
        """Number of rows up to and including the last non-empty row."""
        lt, rt = self.ltable[table], self.rtable[table]
        for i in range(MAX_TABLELEN - 1, -1, -1):
            if lt[i] | rt[i]:
                return i + 1
        return 0

    def table_part_length(self, table: int, start: int) -> int:
        """Length of the table part starting at `start`, including its jump row."""
        if start < 0:
            return 0
        if table == STBL:
            return 1
        lt = self.ltable[table]
        for i in range(start, MAX_TABLELEN):
            if lt[i] == 0xFF:
                return i + 1 - start
        return MAX_TABLELEN - start

    def _rows(self) -> Iterator[PatternRow]:
        for patt in self.patterns:
            yield from patt.rows

    def _wave_command_rows(self) -> list[int]:
        return [i for i, v in enumerate(self.ltable[WTBL]) if v & 0xF0 == 0xF0]

    # ----------------------------------------------------------------- loading

    def load(self, path: str | Path) -> None:
        """Load a song from a file."""
        try:
            stream = open(path, "rb")
        except OSError as exc:
            raise _load_error("cannot open file") from exc
        with stream:
            self.load_stream(stream)

    def loads(self, data: bytes) -> None:
        """Load a song from bytes."""
        import io

        self.load_stream(io.BytesIO(data))

    def load_stream(self, stream: BinaryIO) -> None:
        """Load a song from a binary stream."""
        reader = _Reader(stream)
        if reader.optional(4) != SONG_IDENT:
            raise _load_error("bad file format")

        self.clear()
        self.song_name = _decode_str(reader.bytes(MAX_STR))
        self.author_name = _decode_str(reader.bytes(MAX_STR))
        self.copyright_name = _decode_str(reader.bytes(MAX_STR))

        self._read_order_lists(reader)
        instr_count = self._read_instruments(reader)
        for lt, rt in zip(self.ltable, self.rtable):
            length = reader.byte()
            lt[:length] = reader.bytes(length)
            rt[:length] = reader.bytes(length)
        self._read_patterns(reader)

        if reader.optional(4) == EXTRA_IDENT:
            self.adparam = int.from_bytes(reader.bytes(2), "little")
            self.multiplier = reader.byte()
            try:
                self.model = Model(reader.byte())
            except ValueError:
                raise _load_error("bad chip model") from None

        self._remap_speed_table()
        self._remap_table_pointers(instr_count)

    def _read_order_lists(self, reader: _Reader) -> None:
        if reader.byte() != 1:
            raise _load_error("multiple songs not supported")
        for c, order in enumerate(self.song_order):
            buffer = reader.bytes(reader.byte() + 1)
            if len(buffer) < 3 or buffer[-2] != LOOPSONG:
                raise _load_error("bad song order list")
            loop = buffer[-1]
            pos = 0
            trans = 0
            items = iter(enumerate(buffer, start=1))
            for i, x in items:
                if x == LOOPSONG:
                    break
                if TRANSDOWN <= x < LOOPSONG:
                    if i <= buffer[-1]:
                        loop -= 1
                    trans = x - TRANSUP
                    i, x = _next_item(items)
                repeat = 1
                if REPEAT <= x < TRANSDOWN:
                    repeat = x - REPEAT + 1
                    i, x = _next_item(items)
                if x >= MAX_PATT:
                    raise _load_error("invalid pattern number")
                for _ in range(repeat):
                    if pos >= len(order):
                        raise _load_error("max song length exceeded")
                    order[pos] = OrderRow(trans, x)
                    pos += 1
            if c == 0:
                self.song_len = pos
                self.song_loop = loop
            else:
                if pos != self.song_len:
                    raise _load_error("song length mismatch")
                if loop != self.song_loop:
                    raise _load_error("song loop mismatch")

    def _read_instruments(self, reader: _Reader) -> int:
        count = reader.byte()
        if count >= MAX_INSTR:
            raise _load_error("too many instruments")
        for i in range(1, count + 1):
            self.instruments[i] = Instrument.from_bytes(reader.bytes(INSTRUMENT_SIZE))
        return count

    def _read_patterns(self, reader: _Reader) -> None:
        amount = reader.byte()
        if amount > MAX_PATT:
            raise _load_error("too many patterns")
        for patt in self.patterns[:amount]:
            count = reader.byte()
            data = reader.bytes(count * 4)
            length = count - 1
            if not 0 < length <= MAX_PATTROWS:
                raise _load_error("bad pattern length")
            rows = [PatternRow(*data[o:o + 4]) for o in range(0, length * 4, 4)]
            last_instr = 0
            for row in rows:
                if row.instr > 0:
                    last_instr = row.instr
                elif last_instr > 0 and row.note <= LASTNOTE:
                    row.instr = last_instr
            patt.rows[:length] = rows
            patt.length = length

    def _remap_speed_table(self) -> None:
        # New layout: 01-1f portamento, 21-3f vibrato, 41-5f funk tempo,
        # 80-bf instrument vibrato.
        porta = [False] * MAX_TABLELEN
        vib = [False] * MAX_TABLELEN
        funk = [False] * MAX_TABLELEN

        def mark(cmd: int, data: int) -> None:
            if data == 0:
                return
            if CMD_PORTAUP <= cmd <= CMD_TONEPORTA:
                porta[data - 1] = True
            elif cmd == CMD_VIBRATO:
                vib[data - 1] = True
            elif cmd == CMD_FUNKTEMPO:
                funk[data - 1] = True

        wave_cmds = self._wave_command_rows()
        wl, wr = self.ltable[WTBL], self.rtable[WTBL]
        for row in self._rows():
            mark(row.command, row.data)
        for i in wave_cmds:
            mark(wl[i] & 0xF, wr[i])

        lt, rt = self.ltable[STBL], self.rtable[STBL]
        lspeed, rspeed = bytes(lt), bytes(rt)
        lt[:] = bytes(MAX_TABLELEN)
        rt[:] = bytes(MAX_TABLELEN)

        for i, instr in enumerate(self.instruments[1:], start=1):
            x = instr.ptr[STBL]
            if x > 0:
                lt[0x80 + i - 1] = lspeed[x - 1]
                rt[0x80 + i - 1] = rspeed[x - 1]
            instr.ptr[STBL] = 0x80 + i

        if sum(porta) >= 0x1F:
            raise _load_error("too many portamenti")
        if 0x20 + sum(vib) >= 0x3F:
            raise _load_error("too many vibratos")
        if 0x40 + sum(funk) >= 0x5F:
            raise _load_error("too many funk tempi")

        porta_map: dict[int, int] = {}
        vib_map: dict[int, int] = {}
        funk_map: dict[int, int] = {}
        positions = {"porta": 0x00, "vib": 0x20, "funk": 0x40}
        for i in range(MAX_TABLELEN):
            for kind, used, mapping in (
                ("vib", vib, vib_map),
                ("porta", porta, porta_map),
                ("funk", funk, funk_map),
            ):
                if used[i]:
                    pos = positions[kind]
                    lt[pos] = lspeed[i]
                    rt[pos] = rspeed[i]
                    mapping[i + 1] = pos + 1
                    positions[kind] = pos + 1

        def remap(cmd: int, data: int) -> int:
            if data == 0:
                return data
            if CMD_PORTAUP <= cmd <= CMD_TONEPORTA:
                return porta_map[data]
            if cmd == CMD_VIBRATO:
                return vib_map[data]
            if cmd == CMD_FUNKTEMPO:
                return funk_map[data]
            return data

        for row in self._rows():
            row.data = remap(row.command, row.data)
        for i in wave_cmds:
            wr[i] = remap(wl[i] & 0xF, wr[i])

    def _remap_table_pointers(self, instr_count: int) -> None:
        # Table pointer commands refer to instruments rather than table rows.
        wave_cmds = self._wave_command_rows()
        wl, wr = self.ltable[WTBL], self.rtable[WTBL]

        def instrument_for(table: int, addr: int, mapping: dict[int, int]) -> int:
            nonlocal instr_count
            if addr not in mapping:
                if instr_count >= MAX_INSTR - 1:
                    raise _load_error("cannot remap table ptr command")
                instr_count += 1
                instr = self.instruments[instr_count]
                instr.name = f"{_TABLE_PTR_LABELS[table]} PTR {addr + 1:02X}"
                instr.ptr[table] = addr + 1
                mapping[addr] = instr_count
            return mapping[addr]

        for table in (WTBL, PTBL, FTBL):
            cmd = CMD_SETWAVEPTR + table
            mapping: dict[int, int] = {}
            for i in range(instr_count, 0, -1):
                ptr = self.instruments[i].ptr[table]
                if ptr:
                    mapping[ptr - 1] = i

            for row in self._rows():
                if row.command == cmd and row.data != 0:
                    row.data = instrument_for(table, row.data - 1, mapping)

            if cmd == CMD_SETWAVEPTR:
                continue
            for i in wave_cmds:
                if wr[i] != 0 and wl[i] & 0xF == cmd:
                    wr[i] = instrument_for(table, wr[i] - 1, mapping)

    # ------------------------------------------------------------------ saving

    def save(self, path: str | Path) -> None:
        """Write the song to a file."""
        with open(path, "wb") as stream:
            self.save_stream(stream)

    def save_stream(self, stream: BinaryIO) -> None:
        """Write the song to a binary stream."""
        stream.write(self.dumps())

    def dumps(self) -> bytes:
        """Serialise the song to bytes."""
        if self.song_len > MAX_SONG_ROWS:
            raise ValueError("song too long")
        out = bytearray(SONG_IDENT)
        out += _encode_str(self.song_name, MAX_STR)
        out += _encode_str(self.author_name, MAX_STR)
        out += _encode_str(self.copyright_name, MAX_STR)

        out.append(1)
        for order in self.song_order:
            loop = self.song_loop
            trans = 0
            buffer = bytearray()
            for r, row in enumerate(order[: self.song_len]):
                if row.trans != trans:
                    trans = row.trans
                    buffer.append((trans + TRANSUP) & 0xFF)
                    if r < self.song_loop:
                        loop += 1
                buffer.append(row.pattnum)
            out.append(len(buffer) + 1)
            out += buffer
            out.append(LOOPSONG)
            out.append(loop & 0xFF)

        max_used_instr = max(
            (
                i
                for i, instr in enumerate(self.instruments)
                if i > 0 and (any(instr.ptr[WTBL:FTBL + 1]) or instr.name)
            ),
            default=0,
        )
        out.append(max_used_instr)
        for instr in self.instruments[1:max_used_instr + 1]:
            out += instr.to_bytes()

        for t in range(MAX_TABLES):
            length = self.table_length(t)
            rtbl = bytearray(self.rtable[t])
            if t == WTBL:
                # map instruments back to table rows
                for i in self._wave_command_rows():
                    data = rtbl[i]
                    cmd = self.ltable[WTBL][i] & 0xF
                    if data != 0 and CMD_SETPULSEPTR <= cmd <= CMD_SETFILTERPTR:
                        rtbl[i] = self.instruments[data].ptr[cmd - CMD_SETWAVEPTR]
            out.append(length)
            out += self.ltable[t][:length]
            out += rtbl[:length]

        max_used_patt = max(
            (
                i
                for i, patt in enumerate(self.patterns)
                if any(
                    row.note != REST or row.instr or row.command
                    for row in patt.rows[: patt.length]
                )
            ),
            default=0,
        )
        out.append(max_used_patt + 1)
        for patt in self.patterns[:max_used_patt + 1]:
            out.append(patt.length + 1)
            for row in patt.rows[: patt.length]:
                data = row.data
                if data != 0 and CMD_SETWAVEPTR <= row.command <= CMD_SETFILTERPTR:
                    data = self.instruments[data].ptr[row.command - CMD_SETWAVEPTR]
                out += bytes((row.note, row.instr, row.command, data))
            out += bytes((ENDPATT, 0, 0, 0))

        out += EXTRA_IDENT
        out += self.adparam.to_bytes(2, "little")
        out.append(self.multiplier)
        out.append(int(self.model))
        return bytes(out)