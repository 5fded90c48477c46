"""Song player: runs the tracker play routine and produces SID register values."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field

from gtracker.effects import FREQ_TABLE_SIZE, get_freq, porta_speed, vibrato_params
from gtracker.song import (
    CMD_DONOTHING,
    CMD_FUNKTEMPO,
    CMD_PORTADOWN,
    CMD_PORTAUP,
    CMD_SETAD,
    CMD_SETFILTERCTRL,
    CMD_SETFILTERCUTOFF,
    CMD_SETFILTERPTR,
    CMD_SETMASTERVOL,
    CMD_SETPULSEPTR,
    CMD_SETSR,
    CMD_SETTEMPO,
    CMD_SETWAVE,
    CMD_SETWAVEPTR,
    CMD_TONEPORTA,
    CMD_VIBRATO,
    FIRSTNOTE,
    FTBL,
    KEYOFF,
    KEYON,
    LASTNOTE,
    MAX_CHN,
    MAX_PATT,
    PTBL,
    REST,
    STBL,
    WAVECMD,
    WAVELASTCMD,
    WAVELASTDELAY,
    WAVELASTSILENT,
    WAVESILENT,
    WTBL,
    Song,
)

REGISTER_COUNT = 25
PATTERN_END = 0x7FFFFFFF


def _note_freq(note: int) -> int:
    return get_freq(note) if 0 <= note < FREQ_TABLE_SIZE else 0


class Action(enum.Enum):
    """A request to the play routine, picked up on its next call."""

    NONE = enum.auto()
    START = enum.auto()
    FAST_BACKWARD = enum.auto()
    FAST_FORWARD = enum.auto()
    PAUSE = enum.auto()
    STOP = enum.auto()


@dataclass
class Channel:
    """Playback state of one voice."""

    trans: int = 0
    instr: int = 0
    note: int = 0
    lastnote: int = 0
    newnote: int = 0
    pattptr: int = 0
    pattnum: int = 0
    songptr: int = 0
    freq: int = 0
    gate: int = 0
    wave: int = 0
    pulse: int = 0
    ptr: list[int] = field(default_factory=lambda: [0, 0])
    pulsetime: int = 0
    wavetime: int = 0
    vibtime: int = 0
    vibdelay: int = 0
    command: int = 0
    cmddata: int = 0
    newcommand: int = 0
    newcmddata: int = 0
    tick: int = 0
    tempo: int = 0
    mute: bool = False
    gatetimer: int = 0


class Player:
    """Plays a song, one frame per call of play_routine."""

    def __init__(self, song: Song) -> None:
        self._song = song
        self._lock = threading.Lock()
        self.reset()

    # ---------------------------------------------------------------- control

    def reset(self) -> None:
        """Return to the initial, stopped state."""
        self._regs = bytearray(REGISTER_COUNT)
        with self._lock:
            self._action = Action.NONE
        self._is_playing = False
        self._loop_pattern = False
        self._loop_pattern_req = False

        self.start_song_pos = [0] * MAX_CHN
        self.start_patt_pos = [0] * MAX_CHN
        self.current_song_pos = [0] * MAX_CHN
        self.current_patt_pos = [0] * MAX_CHN

        self._channels = [Channel() for _ in range(MAX_CHN)]
        self._filterctrl = 0
        self._filtertype = 0
        self._filtercutoff = 0
        self._filtertime = 0
        self._filterptr = 0
        self._masterfader = 0x0F

        multiplier = max(1, self._song.multiplier)
        for chan in self._channels:
            chan.trans = 0
            chan.instr = 1
            chan.tempo = (6 * multiplier - 1) & 0xFF
        self._funktable = [(9 * multiplier - 1) & 0xFF, (6 * multiplier - 1) & 0xFF]

    def set_action(self, action: Action) -> None:
        """Request an action for the next frame."""
        with self._lock:
            self._action = action

    def play_song(self) -> None:
        self.set_action(Action.START)

    def stop_song(self) -> None:
        self.set_action(Action.STOP)

    def pause_song(self) -> None:
        self.set_action(Action.PAUSE)

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    @property
    def loop(self) -> bool:
        """Whether the current pattern repeats instead of advancing."""
        return self._loop_pattern_req

    @loop.setter
    def loop(self, value: bool) -> None:
        self._loop_pattern_req = bool(value)

    def release_note(self, chnnum: int) -> None:
        chan = self._channels[chnnum]
        chan.gate = 0xFE
        chan.newnote = 0

    def play_test_note(self, note: int, ins: int, chnnum: int) -> None:
        """Trigger a note with an instrument on one channel."""
        if note == KEYON:
            return
        if note in (REST, KEYOFF):
            self.release_note(chnnum)
            return
        chan = self._channels[chnnum]
        instr = self._song.instruments[ins]
        if not instr.gatetimer & 0x40:
            chan.gate = 0xFE
            if not instr.gatetimer & 0x80:
                self._hard_restart(chnnum)
        chan.instr = ins
        chan.newnote = note & 0xFF
        if not self._is_playing:
            chan.tick = (instr.gatetimer & 0x3F) + 1
            chan.gatetimer = instr.gatetimer & 0x3F

    def set_channel_active(self, chnnum: int, active: bool) -> None:
        self._channels[chnnum].mute = not active

    def is_channel_active(self, chnnum: int) -> bool:
        return not self._channels[chnnum].mute

    @property
    def registers(self) -> bytes:
        """The 25 SID register values of the last frame."""
        return bytes(self._regs)

    @property
    def song(self) -> Song:
        return self._song

    # ------------------------------------------------------------ play routine

    def play_routine(self) -> None:
        """Advance playback by one frame."""
        self._loop_pattern = self._loop_pattern_req
        multiplier = max(1, self._song.multiplier)
        with self._lock:
            action, self._action = self._action, Action.NONE

        if action in (Action.PAUSE, Action.STOP):
            self._halt(action, multiplier)
        if action in (Action.START, Action.FAST_FORWARD, Action.FAST_BACKWARD):
            self._start(action, multiplier)

        self._filter_exec()
        regs = self._regs
        regs[0x15] = 0x00
        regs[0x16] = self._filtercutoff
        regs[0x17] = self._filterctrl
        regs[0x18] = self._filtertype | self._masterfader

        for c in range(MAX_CHN):
            self._channel(c)

    def _hard_restart(self, c: int) -> None:
        self._regs[0x5 + 7 * c] = (self._song.adparam >> 8) & 0xFF
        self._regs[0x6 + 7 * c] = self._song.adparam & 0xFF

    def _halt(self, action: Action, multiplier: int) -> None:
        self._is_playing = False
        gatetimer = self._song.instruments[1].gatetimer & 0x3F
        for c, chan in enumerate(self._channels):
            chan.command = 0
            chan.cmddata = 0
            chan.newcommand = 0
            chan.newcmddata = 0
            chan.ptr[WTBL] = 0
            chan.newnote = 0
            chan.tick = (6 * multiplier - 1) & 0xFF
            chan.gatetimer = gatetimer
            chan.gate = 0xFE
            self._regs[0x6 + 7 * c] &= 0xF0
            if action is Action.STOP and chan.tempo < 2:
                chan.tick = 0
        if action is Action.PAUSE:
            self.start_song_pos = list(self.current_song_pos)
            self.start_patt_pos = list(self.current_patt_pos)
        else:
            self.current_song_pos = list(self.start_song_pos)
            self.current_patt_pos = list(self.start_patt_pos)

    def _start(self, action: Action, multiplier: int) -> None:
        self._filterctrl = 0
        self._filterptr = 0
        gatetimer = self._song.instruments[1].gatetimer & 0x3F
        for c, chan in enumerate(self._channels):
            chan.command = 0
            chan.cmddata = 0
            chan.newcommand = 0
            chan.newcmddata = 0
            chan.wave = 0
            chan.ptr[WTBL] = 0
            chan.newnote = 0
            chan.tick = (6 * multiplier - 1) & 0xFF
            chan.gatetimer = gatetimer

            if action is Action.FAST_FORWARD:
                chan.songptr = (self.current_song_pos[c] + 1) & 0xFF
                chan.pattptr = 0
            elif action is Action.FAST_BACKWARD:
                chan.songptr = max(0, self.current_song_pos[c] - 1) & 0xFF
                chan.pattptr = 0
            elif self._is_playing:
                chan.songptr = self.current_song_pos[c] & 0xFF
                chan.pattptr = 0
            else:
                chan.songptr = self.start_song_pos[c] & 0xFF
                chan.pattptr = self.start_patt_pos[c]
            self._sequencer(c)
        self._is_playing = True

    def _sequencer(self, c: int) -> None:
        song = self._song
        chan = self._channels[c]
        if chan.songptr >= song.song_len:
            chan.songptr = song.song_loop & 0xFF
        self.current_song_pos[c] = chan.songptr
        self.current_patt_pos[c] = 0
        row = song.song_order[c][chan.songptr]
        chan.trans = row.trans & 0xFF
        chan.pattnum = row.pattnum
        chan.songptr = (chan.songptr + 1) & 0xFF
        if chan.pattnum >= MAX_PATT:
            self.stop_song()
            chan.pattnum = 0

    def _filter_exec(self) -> None:
        if not self._filterptr:
            return
        lt = self._song.ltable[FTBL]
        rt = self._song.rtable[FTBL]
        if lt[self._filterptr - 1] == 0xFF:
            self._filterptr = rt[self._filterptr - 1]
            if not self._filterptr:
                return
        if not self._filtertime:
            lval = lt[self._filterptr - 1]
            if lval >= 0x80:
                self._filtertype = lval & 0x70
                self._filterctrl = rt[self._filterptr - 1]
                self._filterptr = (self._filterptr + 1) & 0xFF
                if lt[self._filterptr - 1] == 0x00:
                    self._filtercutoff = rt[self._filterptr - 1]
                    self._filterptr = (self._filterptr + 1) & 0xFF
            elif lval:
                self._filtertime = lval
            else:
                self._filtercutoff = rt[self._filterptr - 1]
                self._filterptr = (self._filterptr + 1) & 0xFF
        if self._filtertime:
            self._filtercutoff = (self._filtercutoff + rt[self._filterptr - 1]) & 0xFF
            self._filtertime -= 1
            if not self._filtertime:
                self._filterptr = (self._filterptr + 1) & 0xFF

    # -------------------------------------------------------------- channels

    def _channel(self, c: int) -> None:
        chan = self._channels[c]
        instr = self._song.instruments[chan.instr]

        chan.tick = (chan.tick - 1) & 0xFF
        if chan.tick:
            if chan.tick >= 0x80:
                if chan.tempo >= 2:
                    chan.tick = chan.tempo
                else:
                    chan.tick = self._funktable[chan.tempo]
                    chan.tempo ^= 1
                if chan.gatetimer > chan.tick:
                    self.stop_song()
        elif self._tick0(c, chan, instr):
            self._write_channel_registers(c, chan)
            return

        if not self._wave_exec(c, chan):
            self._tick_effects(chan)
        self._pulse_exec(chan)
        if self._is_playing and chan.tick == chan.gatetimer:
            self._new_notes(c, chan)
        self._write_channel_registers(c, chan)

    def _check_jump(self, table: int, ptr: int) -> None:
        if ptr and self._song.ltable[table][ptr - 1] == 0xFF:
            self.stop_song()

    def _set_pulse_ptr(self, chan: Channel, instr_num: int) -> None:
        chan.ptr[PTBL] = self._song.instruments[instr_num].ptr[PTBL]
        chan.pulsetime = 0
        self._check_jump(PTBL, chan.ptr[PTBL])

    def _set_filter_ptr(self, instr_num: int) -> None:
        self._filterptr = self._song.instruments[instr_num].ptr[FTBL]
        self._filtertime = 0
        self._check_jump(FTBL, self._filterptr)

    def _set_filter_ctrl(self, value: int) -> None:
        self._filterctrl = value
        if not value:
            self._filterptr = 0

    def _tick0(self, c: int, chan: Channel, instr) -> bool:
        """Run the first tick of a row; True means the channel is done this frame."""
        song = self._song
        if self._is_playing and chan.pattptr == PATTERN_END:
            chan.pattptr = 0
            if not self._loop_pattern:
                self._sequencer(c)

        chan.gatetimer = instr.gatetimer & 0x3F

        if chan.newnote:
            chan.note = (chan.newnote - FIRSTNOTE) & 0xFF
            chan.command = 0
            chan.vibdelay = instr.vibdelay
            chan.cmddata = instr.ptr[STBL]
            if chan.newcommand != CMD_TONEPORTA:
                if instr.firstwave:
                    if instr.firstwave >= 0xFE:
                        chan.gate = instr.firstwave
                    else:
                        chan.wave = instr.firstwave
                        chan.gate = 0xFF
                chan.ptr[WTBL] = instr.ptr[WTBL]
                self._check_jump(WTBL, chan.ptr[WTBL])
                if instr.ptr[PTBL]:
                    chan.ptr[PTBL] = instr.ptr[PTBL]
                    chan.pulsetime = 0
                    self._check_jump(PTBL, chan.ptr[PTBL])
                if instr.ptr[FTBL]:
                    self._filterptr = instr.ptr[FTBL]
                    self._filtertime = 0
                    self._check_jump(FTBL, self._filterptr)
                self._regs[0x5 + 7 * c] = instr.ad
                self._regs[0x6 + 7 * c] = instr.sr

        cmd = chan.newcommand
        data = chan.newcmddata
        if cmd == CMD_DONOTHING:
            chan.command = 0
            chan.cmddata = instr.ptr[STBL]
        elif cmd in (CMD_PORTAUP, CMD_PORTADOWN):
            chan.vibtime = 0
            chan.command = cmd
            chan.cmddata = data
        elif cmd in (CMD_TONEPORTA, CMD_VIBRATO):
            chan.command = cmd
            chan.cmddata = data
        elif cmd == CMD_SETAD:
            self._regs[0x5 + 7 * c] = data
        elif cmd == CMD_SETSR:
            self._regs[0x6 + 7 * c] = data
        elif cmd == CMD_SETWAVE:
            chan.wave = data
        elif cmd == CMD_SETWAVEPTR:
            chan.ptr[WTBL] = song.instruments[data].ptr[WTBL]
            chan.wavetime = 0
            self._check_jump(WTBL, chan.ptr[WTBL])
        elif cmd == CMD_SETPULSEPTR:
            self._set_pulse_ptr(chan, data)
        elif cmd == CMD_SETFILTERPTR:
            self._set_filter_ptr(data)
        elif cmd == CMD_SETFILTERCTRL:
            self._set_filter_ctrl(data)
        elif cmd == CMD_SETFILTERCUTOFF:
            self._filtercutoff = data
        elif cmd == CMD_SETMASTERVOL:
            if data < 0x10:
                self._masterfader = data
        elif cmd == CMD_FUNKTEMPO:
            if data:
                self._funktable[0] = (song.ltable[STBL][data - 1] - 1) & 0xFF
                self._funktable[1] = (song.rtable[STBL][data - 1] - 1) & 0xFF
            for other in self._channels:
                other.tempo = 0
        elif cmd == CMD_SETTEMPO:
            newtempo = data & 0x7F
            if newtempo >= 3:
                newtempo -= 1
            if data >= 0x80:
                chan.tempo = newtempo
            else:
                for other in self._channels:
                    other.tempo = newtempo

        if chan.newnote:
            chan.newnote = 0
            if chan.newcommand != CMD_TONEPORTA:
                return True
        return False

    def _wave_exec(self, c: int, chan: Channel) -> bool:
        """Run the wave table; True means tick effects are skipped this frame."""
        if not chan.ptr[WTBL]:
            return False
        lt = self._song.ltable[WTBL]
        rt = self._song.rtable[WTBL]
        wave = lt[chan.ptr[WTBL] - 1]
        note = rt[chan.ptr[WTBL] - 1]
        is_command = WAVECMD <= wave <= WAVELASTCMD

        if wave > WAVELASTDELAY:
            if wave < WAVESILENT:
                chan.wave = wave
            if WAVESILENT <= wave <= WAVELASTSILENT:
                chan.wave = wave & 0xF
            if is_command:
                self._wave_command(c, chan, wave & 0xF, note)
        elif chan.wavetime != wave:
            chan.wavetime = (chan.wavetime + 1) & 0xFF
            return False

        chan.wavetime = 0
        chan.ptr[WTBL] = (chan.ptr[WTBL] + 1) & 0xFF
        if lt[chan.ptr[WTBL] - 1] == 0xFF:
            chan.ptr[WTBL] = rt[chan.ptr[WTBL] - 1]

        if is_command:
            return True
        if note != 0x80:
            if note < 0x80:
                note += chan.note
            note &= 0x7F
            chan.freq = get_freq(note)
            chan.vibtime = 0
            chan.lastnote = note
            return True
        return False

    def _wave_command(self, c: int, chan: Channel, cmd: int, param: int) -> None:
        if cmd in (CMD_DONOTHING, CMD_SETWAVEPTR, CMD_FUNKTEMPO):
            self.stop_song()
        elif cmd == CMD_PORTAUP:
            chan.freq = (chan.freq + porta_speed(self._song, param, chan.lastnote)) & 0xFFFF
        elif cmd == CMD_PORTADOWN:
            chan.freq = (chan.freq - porta_speed(self._song, param, chan.lastnote)) & 0xFFFF
        elif cmd == CMD_TONEPORTA:
            self._toneporta(chan, param)
        elif cmd == CMD_VIBRATO:
            self._vibrato(chan, param)
        elif cmd == CMD_SETAD:
            self._regs[0x5 + 7 * c] = param
        elif cmd == CMD_SETSR:
            self._regs[0x6 + 7 * c] = param
        elif cmd == CMD_SETWAVE:
            chan.wave = param
        elif cmd == CMD_SETPULSEPTR:
            self._set_pulse_ptr(chan, param)
        elif cmd == CMD_SETFILTERPTR:
            self._set_filter_ptr(param)
        elif cmd == CMD_SETFILTERCTRL:
            self._set_filter_ctrl(param)
        elif cmd == CMD_SETFILTERCUTOFF:
            self._filtercutoff = param
        elif cmd == CMD_SETMASTERVOL:
            if param < 0x10:
                self._masterfader = param

    def _toneporta(self, chan: Channel, param: int) -> None:
        target = _note_freq(chan.note)
        if not param:
            chan.freq = target
            chan.vibtime = 0
            return
        speed = porta_speed(self._song, param, chan.lastnote)
        if chan.freq < target:
            chan.freq = (chan.freq + speed) & 0xFFFF
            if chan.freq > target:
                chan.freq = target
                chan.vibtime = 0
        if chan.freq > target:
            chan.freq = (chan.freq - speed) & 0xFFFF
            if chan.freq < target:
                chan.freq = target
                chan.vibtime = 0

    def _vibrato(self, chan: Channel, param: int) -> None:
        cmpvalue, speed = vibrato_params(self._song, param, chan.lastnote)
        if chan.vibtime < 0x80 and chan.vibtime > cmpvalue:
            chan.vibtime ^= 0xFF
        chan.vibtime = (chan.vibtime + 0x02) & 0xFF
        if chan.vibtime & 0x01:
            chan.freq = (chan.freq - speed) & 0xFFFF
        else:
            chan.freq = (chan.freq + speed) & 0xFFFF

    def _tick_effects(self, chan: Channel) -> None:
        cmd = chan.command
        if cmd == CMD_PORTAUP:
            chan.freq = (chan.freq + porta_speed(self._song, chan.cmddata, chan.lastnote)) & 0xFFFF
        elif cmd == CMD_PORTADOWN:
            chan.freq = (chan.freq - porta_speed(self._song, chan.cmddata, chan.lastnote)) & 0xFFFF
        elif cmd == CMD_DONOTHING:
            if not chan.cmddata or not chan.vibdelay:
                return
            if chan.vibdelay > 1:
                chan.vibdelay -= 1
                return
            self._vibrato(chan, chan.cmddata)
        elif cmd == CMD_VIBRATO:
            self._vibrato(chan, chan.cmddata)
        elif cmd == CMD_TONEPORTA:
            self._toneporta(chan, chan.cmddata)

    def _pulse_exec(self, chan: Channel) -> None:
        if not chan.ptr[PTBL]:
            return
        lt = self._song.ltable[PTBL]
        rt = self._song.rtable[PTBL]
        if lt[chan.ptr[PTBL] - 1] == 0xFF:
            chan.ptr[PTBL] = rt[chan.ptr[PTBL] - 1]
            if not chan.ptr[PTBL]:
                return
        if not chan.pulsetime:
            lval = lt[chan.ptr[PTBL] - 1]
            if lval >= 0x80:
                chan.pulse = ((lval & 0xF) << 8) | rt[chan.ptr[PTBL] - 1]
                chan.ptr[PTBL] = (chan.ptr[PTBL] + 1) & 0xFF
            else:
                chan.pulsetime = lval
        if chan.pulsetime:
            speed = rt[chan.ptr[PTBL] - 1]
            if speed < 0x80:
                chan.pulse = (chan.pulse + speed) & 0xFFF
            else:
                chan.pulse = (chan.pulse + speed - 0x100) & 0xFFF
            chan.pulsetime -= 1
            if not chan.pulsetime:
                chan.ptr[PTBL] = (chan.ptr[PTBL] + 1) & 0xFF

    def _new_notes(self, c: int, chan: Channel) -> None:
        song = self._song
        self.current_patt_pos[c] = chan.pattptr
        patt = song.patterns[chan.pattnum]
        row = patt.rows[chan.pattptr]
        chan.pattptr += 1
        if chan.pattptr >= patt.length:
            chan.pattptr = PATTERN_END
        if row.instr:
            chan.instr = row.instr
        chan.newcommand = row.command
        chan.newcmddata = row.data

        if row.note == KEYOFF:
            chan.gate = 0xFE
        if row.note == KEYON:
            chan.gate = 0xFF
        if row.note <= LASTNOTE:
            chan.newnote = (row.note + chan.trans) & 0xFF
            if chan.newcommand != CMD_TONEPORTA:
                gatetimer = song.instruments[chan.instr].gatetimer
                if not gatetimer & 0x40:
                    chan.gate = 0xFE
                    if not gatetimer & 0x80:
                        self._hard_restart(c)

    def _write_channel_registers(self, c: int, chan: Channel) -> None:
        regs = self._regs
        base = 7 * c
        regs[base + 0] = chan.freq & 0xFF
        regs[base + 1] = (chan.freq >> 8) & 0xFF
        regs[base + 2] = chan.pulse & 0xFE
        regs[base + 3] = (chan.pulse >> 8) & 0xFF
        if chan.mute:
            regs[base + 4] = chan.wave & 0x08
        else:
            regs[base + 4] = chan.wave & chan.gate