"""Frequency table and speed-table lookups shared by the player's effects."""

from __future__ import annotations

from gtracker.song import STBL, Song

_FREQ_LO = bytes((
    0x17, 0x27, 0x39, 0x4B, 0x5F, 0x74, 0x8A, 0xA1, 0xBA, 0xD4, 0xF0, 0x0E, 0x2D, 0x4E, 0x71, 0x96,
    0xBE, 0xE8, 0x14, 0x43, 0x74, 0xA9, 0xE1, 0x1C, 0x5A, 0x9C, 0xE2, 0x2D, 0x7C, 0xCF, 0x28, 0x85,
    0xE8, 0x52, 0xC1, 0x37, 0xB4, 0x39, 0xC5, 0x5A, 0xF7, 0x9E, 0x4F, 0x0A, 0xD1, 0xA3, 0x82, 0x6E,
    0x68, 0x71, 0x8A, 0xB3, 0xEE, 0x3C, 0x9E, 0x15, 0xA2, 0x46, 0x04, 0xDC, 0xD0, 0xE2, 0x14, 0x67,
    0xDD, 0x79, 0x3C, 0x29, 0x44, 0x8D, 0x08, 0xB8, 0xA1, 0xC5, 0x28, 0xCD, 0xBA, 0xF1, 0x78, 0x53,
    0x87, 0x1A, 0x10, 0x71, 0x42, 0x89, 0x4F, 0x9B, 0x74, 0xE2, 0xF0, 0xA6, 0x0E, 0x33, 0x20, 0xFF,
)) + bytes(32)

_FREQ_HI = bytes((
    0x01, 0x01, 0x01, 0x01, 0x01, 0x01, 0x01, 0x01, 0x01, 0x01, 0x01, 0x02, 0x02, 0x02, 0x02, 0x02,
    0x02, 0x02, 0x03, 0x03, 0x03, 0x03, 0x03, 0x04, 0x04, 0x04, 0x04, 0x05, 0x05, 0x05, 0x06, 0x06,
    0x06, 0x07, 0x07, 0x08, 0x08, 0x09, 0x09, 0x0A, 0x0A, 0x0B, 0x0C, 0x0D, 0x0D, 0x0E, 0x0F, 0x10,
    0x11, 0x12, 0x13, 0x14, 0x15, 0x17, 0x18, 0x1A, 0x1B, 0x1D, 0x1F, 0x20, 0x22, 0x24, 0x27, 0x29,
    0x2B, 0x2E, 0x31, 0x34, 0x37, 0x3A, 0x3E, 0x41, 0x45, 0x49, 0x4E, 0x52, 0x57, 0x5C, 0x62, 0x68,
    0x6E, 0x75, 0x7C, 0x83, 0x8B, 0x93, 0x9C, 0xA5, 0xAF, 0xB9, 0xC4, 0xD0, 0xDD, 0xEA, 0xF8, 0xFF,
)) + bytes(32)

FREQ_TABLE_SIZE = len(_FREQ_LO)


def get_freq(note: int) -> int:
    """SID frequency register value (16 bit) for a note number 0-127."""
    if not 0 <= note < FREQ_TABLE_SIZE:
        raise ValueError(f"note out of range: {note}")
    return (_FREQ_HI[note] << 8) | _FREQ_LO[note]


def _freq_or_zero(note: int) -> int:
    return get_freq(note) if note < FREQ_TABLE_SIZE else 0


def realtime_speed(note: int, shift: int) -> int:
    """Distance to the next semitone, as a 16-bit value, shifted right by `shift`."""
    if shift < 0:
        raise ValueError(f"negative shift: {shift}")
    speed = (_freq_or_zero(note + 1) - get_freq(note)) & 0xFFFF
    return speed >> shift


def porta_speed(song: Song, param: int, lastnote: int) -> int:
    """Portamento speed for a speed-table reference (0 means no speed)."""
    if not param:
        return 0
    lval = song.ltable[STBL][param - 1]
    rval = song.rtable[STBL][param - 1]
    speed = (lval << 8) | rval
    if speed >= 0x8000:
        speed = realtime_speed(lastnote, rval)
    return speed


def vibrato_params(song: Song, param: int, lastnote: int) -> tuple[int, int]:
    """Vibrato (compare value, speed) for a speed-table reference."""
    if not param:
        return 0, 0
    cmpvalue = song.ltable[STBL][param - 1]
    speed = song.rtable[STBL][param - 1]
    if cmpvalue >= 0x80:
        cmpvalue &= 0x7F
        speed = realtime_speed(lastnote, speed)
    return cmpvalue, speed