"""The GTI5 instrument file format and the instrument directory listing."""

from __future__ import annotations

import io
from pathlib import Path
from typing import BinaryIO

from gtracker.copy_buffer import InstrumentCopyBuffer
from gtracker.song import (
    INSTRUMENT_SIZE,
    MAX_INSTR,
    MAX_TABLELEN,
    MAX_TABLES,
    STBL,
    Instrument,
    LoadError,
    Song,
)

INSTRUMENT_IDENT = b"GTI5"
FILE_SUFFIX = ".ins"


def _read_exact(stream: BinaryIO, count: int) -> bytes:
    data = stream.read(count)
    if len(data) != count:
        raise LoadError("unexpected end of file")
    return data


def read_instrument(stream: BinaryIO) -> InstrumentCopyBuffer:
    """Read an instrument and its table parts from a binary stream.

    The result is a copy buffer with no original instrument, ready to paste.
    """
    if stream.read(4) != INSTRUMENT_IDENT:
        raise LoadError("bad file format")
    instr = Instrument.from_bytes(_read_exact(stream, INSTRUMENT_SIZE))
    ltable = [bytearray(MAX_TABLELEN) for _ in range(MAX_TABLES)]
    rtable = [bytearray(MAX_TABLELEN) for _ in range(MAX_TABLES)]
    for t in range(MAX_TABLES):
        length = _read_exact(stream, 1)[0]
        if length == 0:
            if instr.ptr[t] != 0:
                raise LoadError("bad table pointer")
            continue
        if instr.ptr[t] == 0:
            raise LoadError("bad table pointer")
        start = instr.ptr[t] - 1
        if start + length > MAX_TABLELEN:
            raise LoadError("table part too long")
        ltable[t][start:start + length] = _read_exact(stream, length)
        rtable[t][start:start + length] = _read_exact(stream, length)
    return InstrumentCopyBuffer(
        instr_num=0,
        instr=instr,
        ltable=[bytes(t) for t in ltable],
        rtable=[bytes(t) for t in rtable],
    )


def write_instrument(song: Song, instr_num: int, stream: BinaryIO) -> None:
    """Write instrument `instr_num` of `song` with its table parts to a stream."""
    if not 0 <= instr_num < MAX_INSTR:
        raise ValueError(f"instrument out of range: {instr_num}")
    instr = song.instruments[instr_num]
    out = bytearray(INSTRUMENT_IDENT)
    out += instr.to_bytes()
    for t in range(MAX_TABLES):
        if instr.ptr[t] == 0:
            out.append(0)
            continue
        start = instr.ptr[t] - 1
        length = 1 if t == STBL else song.table_part_length(t, start)
        out.append(length)
        out += song.ltable[t][start:start + length]
        out += song.rtable[t][start:start + length]
    stream.write(bytes(out))


def load_instrument(path: str | Path) -> InstrumentCopyBuffer:
    """Read an instrument file."""
    try:
        stream = open(path, "rb")
    except OSError as exc:
        raise LoadError("cannot open file") from exc
    with stream:
        return read_instrument(stream)


def save_instrument(song: Song, instr_num: int, path: str | Path) -> None:
    """Write instrument `instr_num` of `song` to a file."""
    buffer = io.BytesIO()
    write_instrument(song, instr_num, buffer)
    Path(path).write_bytes(buffer.getvalue())


def list_instruments(directory: str | Path) -> list[str]:
    """Names of the instrument files in `directory`, sorted ignoring case."""
    names = [
        entry.stem
        for entry in Path(directory).iterdir()
        if entry.is_file() and entry.suffix == FILE_SUFFIX
    ]
    return sorted(names, key=str.lower)