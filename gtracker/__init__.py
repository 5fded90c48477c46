"""Song model, GTS5/GTI5 file formats, playback routine and mixer for a SID chiptune tracker."""

__version__ = "0.1.0"
__all__ = [
    "song",
    "effects",
    "player",
    "instrument_tables",
    "copy_buffer",
    "instrument_file",
    "mixer",
]