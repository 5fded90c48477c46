import copy

import pytest

from gtracker.instrument_tables import (
    add_table_row,
    delete_table_row,
    table_share_count,
)
from gtracker.song import STBL, WTBL, PTBL, Song


@pytest.fixture
def song():
    s = Song()
    # instrument 1: rows 0..2, jump back to row 1
    s.instruments[1].ptr[WTBL] = 1
    s.ltable[WTBL][0:3] = bytes([0x21, 0x41, 0xFF])
    s.rtable[WTBL][0:3] = bytes([0x00, 0x00, 0x01])
    # instrument 2: rows 3..4, jump back to row 4
    s.instruments[2].ptr[WTBL] = 4
    s.ltable[WTBL][3:5] = bytes([0x11, 0xFF])
    s.rtable[WTBL][3:5] = bytes([0x80, 0x04])
    return s


def test_add_row_shifts_rows_and_pointers(song):
    add_table_row(song, WTBL, 1)
    assert list(song.ltable[WTBL][:6]) == [0x21, 0x00, 0x41, 0xFF, 0x11, 0xFF]
    assert list(song.rtable[WTBL][:6]) == [0x00, 0x00, 0x00, 0x01, 0x80, 0x05]
    assert song.instruments[1].ptr[WTBL] == 1
    assert song.instruments[2].ptr[WTBL] == 5


def test_add_row_grows_table_length(song):
    before = song.table_length(WTBL)
    add_table_row(song, WTBL, 0)
    assert song.table_length(WTBL) == before + 1


def test_add_then_delete_restores_song(song):
    ltable = [bytes(t) for t in song.ltable]
    rtable = [bytes(t) for t in song.rtable]
    instruments = copy.deepcopy(song.instruments)
    add_table_row(song, WTBL, 1)
    delete_table_row(song, WTBL, 1)
    assert [bytes(t) for t in song.ltable] == ltable
    assert [bytes(t) for t in song.rtable] == rtable
    assert song.instruments == instruments


def test_delete_row_shifts_rows_and_pointers(song):
    delete_table_row(song, WTBL, 0)
    assert list(song.ltable[WTBL][:4]) == [0x41, 0xFF, 0x11, 0xFF]
    assert song.instruments[2].ptr[WTBL] == 3
    assert song.rtable[WTBL][3] == 3
    assert song.table_length(WTBL) == 4


def test_delete_jump_row_clears_pointer_to_it(song):
    song.instruments[3].ptr[WTBL] = 3
    delete_table_row(song, WTBL, 2)
    assert song.instruments[3].ptr[WTBL] == 0
    assert song.instruments[1].ptr[WTBL] == 1
    assert song.instruments[2].ptr[WTBL] == 3


def test_other_tables_untouched(song):
    speed_ptrs = [instr.ptr[STBL] for instr in song.instruments]
    pulse = bytes(song.ltable[PTBL])
    add_table_row(song, WTBL, 0)
    delete_table_row(song, WTBL, 3)
    assert [instr.ptr[STBL] for instr in song.instruments] == speed_ptrs
    assert bytes(song.ltable[PTBL]) == pulse


def test_share_count(song):
    assert table_share_count(song, 1, WTBL) == 1
    song.instruments[5].ptr[WTBL] = 1
    assert table_share_count(song, 1, WTBL) == 2
    assert table_share_count(song, 5, WTBL) == 2
    assert table_share_count(song, 7, WTBL) == 0


def test_share_count_speed_table_is_unique(song):
    assert table_share_count(song, 3, STBL) == 1


@pytest.mark.parametrize("pos", [-1, 255])
def test_bad_row_raises(song, pos):
    with pytest.raises(ValueError):
        add_table_row(song, WTBL, pos)
    with pytest.raises(ValueError):
        delete_table_row(song, WTBL, pos)


def test_bad_table_raises(song):
    with pytest.raises(ValueError):
        add_table_row(song, 4, 0)
    with pytest.raises(ValueError):
        table_share_count(song, 1, 4)
    with pytest.raises(ValueError):
        table_share_count(song, 64, WTBL)