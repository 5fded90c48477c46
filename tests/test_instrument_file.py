import io

import pytest

from gtracker.instrument_file import (
    list_instruments,
    load_instrument,
    read_instrument,
    save_instrument,
    write_instrument,
)
from gtracker.song import FTBL, PTBL, STBL, WTBL, LoadError, Song


def _song() -> Song:
    song = Song()
    instr = song.instruments[1]
    instr.name = "Lead"
    instr.ad = 0x12
    instr.sr = 0xF3
    instr.ptr[WTBL] = 1
    song.ltable[WTBL][0:3] = bytes([0x41, 0x21, 0xFF])
    song.rtable[WTBL][0:3] = bytes([0x00, 0x0C, 0x02])
    instr.ptr[PTBL] = 1
    song.ltable[PTBL][0:2] = bytes([0x88, 0xFF])
    song.rtable[PTBL][0:2] = bytes([0x00, 0x00])
    song.ltable[STBL][0x80] = 0x05
    song.rtable[STBL][0x80] = 0x20
    return song


def _dump(song: Song, num: int) -> bytes:
    stream = io.BytesIO()
    write_instrument(song, num, stream)
    return stream.getvalue()


def test_header_is_ident_and_instrument_record():
    song = _song()
    data = _dump(song, 1)
    assert data[:4] == b"GTI5"
    assert data[4:29] == song.instruments[1].to_bytes()


def test_table_lengths_written():
    data = _dump(_song(), 1)
    body = data[29:]
    # wave: 3 rows
    assert body[0] == 3
    assert body[1:4] == bytes([0x41, 0x21, 0xFF])
    assert body[4:7] == bytes([0x00, 0x0C, 0x02])
    # pulse: 2 rows
    assert body[7] == 2
    # filter: unused
    assert body[12] == 0
    # speed: single row
    assert body[13:16] == bytes([1, 0x05, 0x20])
    assert len(body) == 16


def test_round_trip():
    song = _song()
    buf = read_instrument(io.BytesIO(_dump(song, 1)))
    assert buf.instr_num == 0
    assert buf.instr == song.instruments[1]
    assert buf.ltable[WTBL][:3] == bytes(song.ltable[WTBL][:3])
    assert buf.rtable[WTBL][:3] == bytes(song.rtable[WTBL][:3])
    assert buf.ltable[PTBL][:2] == bytes(song.ltable[PTBL][:2])
    assert buf.ltable[STBL][0x80] == 0x05
    assert buf.rtable[STBL][0x80] == 0x20
    assert not any(buf.ltable[FTBL])


def test_bad_ident():
    with pytest.raises(LoadError, match="bad file format"):
        read_instrument(io.BytesIO(b"GTS5" + bytes(40)))


def test_truncated():
    data = _dump(_song(), 1)
    with pytest.raises(LoadError):
        read_instrument(io.BytesIO(data[:-3]))


def test_table_without_pointer_rejected():
    song = _song()
    data = bytearray(_dump(song, 1))
    data[4 + 2 + WTBL] = 0  # clear wave pointer in record
    with pytest.raises(LoadError):
        read_instrument(io.BytesIO(bytes(data)))


def test_invalid_instrument_number():
    with pytest.raises(ValueError):
        write_instrument(Song(), 64, io.BytesIO())


def test_file_round_trip_and_paste(tmp_path):
    src = _song()
    path = tmp_path / "lead.ins"
    save_instrument(src, 1, path)
    buf = load_instrument(path)

    dst = Song()
    buf.paste(dst, 2)
    instr = dst.instruments[2]
    assert instr.name == "Lead"
    assert instr.ad == 0x12
    start = instr.ptr[WTBL] - 1
    assert dst.ltable[WTBL][start:start + 3] == bytes([0x41, 0x21, 0xFF])
    assert dst.ltable[STBL][instr.ptr[STBL] - 1] == 0x05


def test_load_missing_file(tmp_path):
    with pytest.raises(LoadError, match="cannot open file"):
        load_instrument(tmp_path / "nope.ins")


def test_list_instruments(tmp_path):
    for name in ("bass.ins", "Alpha.ins", "choir.ins", "notes.txt"):
        (tmp_path / name).write_bytes(b"")
    (tmp_path / "dir.ins").mkdir()
    assert list_instruments(tmp_path) == ["Alpha", "bass", "choir"]