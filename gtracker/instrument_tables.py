"""Row insertion and deletion in the song tables, keeping pointers consistent."""

from __future__ import annotations

from gtracker.song import MAX_INSTR, MAX_TABLELEN, MAX_TABLES, Song

JUMP = 0xFF


def _check(table: int, pos: int) -> None:
    if not 0 <= table < MAX_TABLES:
        raise ValueError(f"table out of range: {table}")
    if not 0 <= pos < MAX_TABLELEN:
        raise ValueError(f"table row out of range: {pos}")


def add_table_row(song: Song, table: int, pos: int) -> None:
    """Insert an empty row at `pos`, shifting later rows down by one.

    Instrument pointers and jump targets that point past `pos` are moved
    along with the rows. The last row of the table is dropped.
    """
    _check(table, pos)
    for instr in song.instruments:
        if instr.ptr[table] > pos + 1:
            instr.ptr[table] = (instr.ptr[table] + 1) & 0xFF

    lt = song.ltable[table]
    rt = song.rtable[table]
    for i in range(pos + 1, MAX_TABLELEN):
        if lt[i] == JUMP and rt[i] >= pos + 1:
            rt[i] = (rt[i] + 1) & 0xFF

    lt[pos:] = lt[-1:] + lt[pos:-1]
    rt[pos:] = rt[-1:] + rt[pos:-1]


def delete_table_row(song: Song, table: int, pos: int) -> None:
    """Remove the row at `pos`, shifting later rows up by one.

    Deleting a jump row clears the pointers of instruments that point at it.
    Instrument pointers and jump targets past `pos` are moved back by one.
    """
    _check(table, pos)
    lt = song.ltable[table]
    rt = song.rtable[table]
    is_jump_row = lt[pos] == JUMP

    for instr in song.instruments:
        if is_jump_row and instr.ptr[table] == pos + 1:
            instr.ptr[table] = 0
        elif instr.ptr[table] > pos + 1:
            instr.ptr[table] -= 1

    for i in range(pos + 1, MAX_TABLELEN):
        if lt[i] == JUMP and rt[i] > pos + 1:
            rt[i] -= 1

    lt[pos] = 0
    rt[pos] = 0
    lt[pos:] = lt[pos + 1:] + lt[pos:pos + 1]
    rt[pos:] = rt[pos + 1:] + rt[pos:pos + 1]


def table_share_count(song: Song, instr_num: int, table: int) -> int:
    """Number of instruments using the same table part as `instr_num`.

    Returns 0 when the instrument has no pointer into the table.
    """
    if not 0 <= instr_num < MAX_INSTR:
        raise ValueError(f"instrument out of range: {instr_num}")
    if not 0 <= table < MAX_TABLES:
        raise ValueError(f"table out of range: {table}")
    ptr = song.instruments[instr_num].ptr[table]
    if ptr == 0:
        return 0
    return sum(1 for instr in song.instruments if instr.ptr[table] == ptr)