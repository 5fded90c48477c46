# gtracker

A library for composing chiptune music for the C64 SID chip. It holds the
song data of a tracker, reads and writes songs in the GTS5 file format and
instruments in the GTI5 format, steps through a song frame by frame to
produce SID register values, and times those register writes against a
SID emulation that you supply.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

- `gtracker.song`: the song model: `Song`, `Instrument`, `Pattern`,
  `PatternRow`, `OrderRow` and the chip `Model`, plus the command, table and
  note constants (`CMD_*`, `WTBL`, `PTBL`, `FTBL`, `STBL`, `REST`, ...).
  `Song.load(path)`, `Song.loads(data)` and `Song.load_stream(stream)` read
  GTS5 data; a file that cannot be read raises `LoadError`. On loading, the
  speed table is rearranged (portamento from row 01, vibrato from 21, funk
  tempo from 41, instrument vibrato from 80) and table pointer commands are
  made to refer to instruments, creating "WAVE/PULS/FILT PTR xx" instruments
  where needed. `Song.save(path)`, `Song.save_stream(stream)` and
  `Song.dumps()` write GTS5 data back. `Song.table_length(table)` and
  `Song.table_part_length(table, start)` measure the tables, and
  `Song.clear()` resets the song.
- `gtracker.effects`: the note frequency table (`get_freq`), the realtime
  speed of a note (`realtime_speed`) and the speed-table lookups used by
  portamento (`porta_speed`) and vibrato (`vibrato_params`).
- `gtracker.player`: `Player` runs the play routine once per call of
  `play_routine()` and fills the 25 SID registers, available as the
  `registers` property. `play_song()`, `pause_song()`, `stop_song()` and
  `set_action(Action...)` request an action for the next frame;
  `is_playing` and `loop` are properties. `play_test_note`, `release_note`,
  `set_channel_active` and `is_channel_active` act on single channels.
- `gtracker.instrument_tables`: `add_table_row` and `delete_table_row`
  insert and remove rows in the wave, pulse, filter and speed tables while
  keeping instrument pointers and table jumps consistent;
  `table_share_count` counts the instruments sharing a table part.
- `gtracker.copy_buffer`: `InstrumentCopyBuffer.copy(song, instr_num)`
  snapshots an instrument with the song's tables, and
  `paste(song, instr_num)` writes it into another slot, sharing identical
  table parts and appending the others.
- `gtracker.instrument_file`: `read_instrument`, `write_instrument`,
  `load_instrument` and `save_instrument` handle GTI5 instrument data;
  `list_instruments(directory)` lists the `.ins` files in a directory,
  sorted ignoring case.
- `gtracker.mixer`: `Mixer(player, sid)` calls the play routine and writes
  its registers to a SID object at the chip's write timing;
  `mix(length)` returns `length` mono samples. The SID object must provide
  `set_reg(reg, value)` and `clock(cycles, max_samples)`, the latter
  returning the samples it rendered (see the `SidChip` protocol).

## Example

```python
from gtracker.song import Song
from gtracker.player import Player

song = Song()
song.load("tune.sng")

player = Player(song)
player.play_song()
for _ in range(50):
    player.play_routine()
    regs = player.registers

with open("copy.sng", "wb") as f:
    song.save_stream(f)
```

## What it does not do

The package contains no SID chip emulation and no audio output: `Mixer`
needs a SID object supplied by the caller. There is no editor screen, no
command-line program and no settings storage; it is a library only.