import pytest

from gtracker.mixer import CLOCKRATE_PAL, MIXRATE, Mixer
from gtracker.player import Player
from gtracker.song import Song


class FakeSid:
    def __init__(self):
        self.writes = []
        self.cycles = 0
        self.emitted = 0

    def set_reg(self, reg, value):
        self.writes.append((reg, value))

    def clock(self, cycles, max_samples):
        self.cycles += cycles
        target = self.cycles * MIXRATE // CLOCKRATE_PAL
        n = max(0, min(max_samples, target - self.emitted))
        self.emitted += n
        return [len(self.writes)] * n


def _mixer(multiplier=1, adparam=0x0F00):
    song = Song()
    song.multiplier = multiplier
    song.adparam = adparam
    player = Player(song)
    sid = FakeSid()
    return Mixer(player, sid), player, sid


@pytest.mark.parametrize("length", [0, 1, 100, 882, 1000])
def test_returns_requested_length(length):
    mixer, _, _ = _mixer()
    assert len(mixer.mix(length)) == length


def test_zero_length_writes_nothing():
    mixer, _, sid = _mixer()
    assert mixer.mix(0) == []
    assert sid.writes == []


def test_reverse_register_order():
    mixer, player, sid = _mixer()
    mixer.mix(882)
    frame = sid.writes[:25]
    assert [r for r, _ in frame] == list(range(24, -1, -1))
    assert all(v == player.registers[r] for r, v in frame)


def test_forward_register_order():
    mixer, player, sid = _mixer(adparam=0xF000)
    mixer.mix(882)
    frame = sid.writes[:25]
    assert [r for r, _ in frame] == list(range(25))


def test_split_calls_follow_same_schedule():
    whole, _, sid_whole = _mixer()
    whole.mix(2000)
    parts, _, sid_parts = _mixer()
    for _ in range(4):
        parts.mix(500)
    n = len(sid_parts.writes)
    assert n > 0
    assert [r for r, _ in sid_parts.writes] == [r for r, _ in sid_whole.writes[:n]]


def test_negative_length():
    mixer, _, _ = _mixer()
    with pytest.raises(ValueError):
        mixer.mix(-1)