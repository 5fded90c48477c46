import pytest

from gtracker.effects import get_freq
from gtracker.player import REGISTER_COUNT, Action, Player
from gtracker.song import (
    CMD_SETMASTERVOL,
    FIRSTNOTE,
    KEYON,
    PTBL,
    REST,
    WTBL,
    PatternRow,
    Song,
)


def beep_song():
    song = Song()
    instr = song.instruments[1]
    instr.name = "Beep"
    instr.sr = 0xF3
    instr.ptr[WTBL] = 1
    song.ltable[WTBL][0] = 0x11
    song.ltable[WTBL][1] = 0xFF
    return song


def run(player, frames):
    for _ in range(frames):
        player.play_routine()


def two_position_song():
    song = beep_song()
    for patt in song.patterns[:3]:
        patt.length = 1
    song.song_len = 2
    return song


def test_new_player_is_silent_and_stopped():
    player = Player(Song())
    assert player.registers == bytes(REGISTER_COUNT)
    assert player.is_playing is False
    assert player.loop is False


def test_song_property_returns_song():
    song = Song()
    assert Player(song).song is song


def test_loop_property():
    player = Player(Song())
    player.loop = True
    assert player.loop is True
    player.loop = False
    assert player.loop is False


def test_channel_active_toggle():
    player = Player(Song())
    assert player.is_channel_active(1)
    player.set_channel_active(1, False)
    assert not player.is_channel_active(1)
    player.set_channel_active(1, True)
    assert player.is_channel_active(1)


def test_default_master_volume_register():
    player = Player(Song())
    player.play_routine()
    assert player.registers[0x18] == 0x0F


def test_test_note_hard_restart_registers():
    song = beep_song()
    song.adparam = 0x1234
    player = Player(song)
    player.play_test_note(FIRSTNOTE + 48, 1, 0)
    regs = player.registers
    assert regs[5] == 0x12
    assert regs[6] == 0x34


def test_test_note_without_hard_restart():
    song = beep_song()
    song.adparam = 0x1234
    song.instruments[1].gatetimer |= 0x80
    player = Player(song)
    player.play_test_note(FIRSTNOTE + 48, 1, 0)
    assert player.registers[5] == 0
    assert player.registers[6] == 0


def test_test_note_sets_frequency_and_wave():
    player = Player(beep_song())
    player.play_test_note(FIRSTNOTE + 48, 1, 0)
    run(player, 6)
    regs = player.registers
    freq = get_freq(48)
    assert regs[0] == freq & 0xFF
    assert regs[1] == freq >> 8
    assert regs[4] == 0x11
    assert regs[6] == 0xF3


def test_release_note_clears_gate_bit():
    player = Player(beep_song())
    player.play_test_note(FIRSTNOTE + 48, 1, 0)
    run(player, 6)
    assert player.registers[4] & 0x01 == 1
    player.release_note(0)
    player.play_routine()
    assert player.registers[4] & 0x01 == 0


def test_rest_test_note_releases():
    player = Player(beep_song())
    player.play_test_note(FIRSTNOTE + 48, 1, 0)
    run(player, 6)
    player.play_test_note(REST, 1, 0)
    player.play_routine()
    assert player.registers[4] & 0x01 == 0


def test_muted_channel_only_keeps_test_bit():
    player = Player(beep_song())
    player.set_channel_active(0, False)
    player.play_test_note(FIRSTNOTE + 48, 1, 0)
    run(player, 6)
    assert player.registers[4] & ~0x08 == 0


def test_pulse_table_sets_pulse_width():
    song = beep_song()
    song.instruments[1].ptr[PTBL] = 1
    song.ltable[PTBL][0] = 0x88
    song.ltable[PTBL][1] = 0xFF
    player = Player(song)
    player.play_test_note(FIRSTNOTE + 48, 1, 0)
    run(player, 5)
    assert player.registers[2] == 0x00
    assert player.registers[3] == 0x08


def test_play_song_starts_playing():
    player = Player(Song())
    player.play_song()
    player.play_routine()
    assert player.is_playing


def test_pattern_note_is_played():
    song = beep_song()
    song.patterns[0].rows[0] = PatternRow(FIRSTNOTE + 24, 1, 0, 0)
    player = Player(song)
    player.play_song()
    run(player, 10)
    freq = get_freq(24)
    assert player.registers[0] == freq & 0xFF
    assert player.registers[1] == freq >> 8
    assert player.is_playing


def test_song_advances_and_loops():
    player = Player(two_position_song())
    player.play_song()
    run(player, 5)
    assert player.current_song_pos == [1, 1, 1]
    run(player, 6)
    assert player.current_song_pos == [0, 0, 0]


def test_pattern_loop_keeps_position():
    player = Player(two_position_song())
    player.loop = True
    player.play_song()
    run(player, 20)
    assert player.current_song_pos == [0, 0, 0]
    assert player.is_playing


def test_stop_returns_to_start_position():
    player = Player(two_position_song())
    player.play_song()
    run(player, 5)
    player.stop_song()
    player.play_routine()
    assert not player.is_playing
    assert player.current_song_pos == player.start_song_pos == [0, 0, 0]


def test_pause_remembers_position():
    player = Player(two_position_song())
    player.play_song()
    run(player, 5)
    player.pause_song()
    player.play_routine()
    assert not player.is_playing
    assert player.start_song_pos == [1, 1, 1]


def test_fast_forward_and_backward():
    player = Player(two_position_song())
    player.play_song()
    player.play_routine()
    player.set_action(Action.FAST_FORWARD)
    player.play_routine()
    assert player.current_song_pos == [1, 1, 1]
    player.set_action(Action.FAST_BACKWARD)
    player.play_routine()
    assert player.current_song_pos == [0, 0, 0]


@pytest.mark.parametrize("volume", [0, 5, 0x0E])
def test_master_volume_command(volume):
    song = Song()
    song.patterns[0].rows[0] = PatternRow(REST, 0, CMD_SETMASTERVOL, volume)
    player = Player(song)
    player.play_song()
    run(player, 6)
    assert player.registers[0x18] == volume


def test_master_volume_out_of_range_ignored():
    song = Song()
    song.patterns[0].rows[0] = PatternRow(REST, 0, CMD_SETMASTERVOL, 0x10)
    player = Player(song)
    player.play_song()
    run(player, 6)
    assert player.registers[0x18] == 0x0F


def test_reset_restores_initial_state():
    player = Player(beep_song())
    player.play_test_note(FIRSTNOTE + 48, 1, 0)
    player.loop = True
    player.play_song()
    run(player, 8)
    player.reset()
    assert player.registers == bytes(REGISTER_COUNT)
    assert not player.is_playing
    assert not player.loop
    assert player.current_song_pos == [0, 0, 0]