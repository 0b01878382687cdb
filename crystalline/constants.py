"""Timing and velocity defaults for Crystalline.

Delays are stored on lattice nodes in whole milliseconds and converted to
seconds at playback time.  Velocity is a float in [0, 1] until it reaches a
MIDI sink, where it is scaled to the 1-127 range.
"""

# Seeding: each node gets a random inter-event delay in [MIN_DELAY_MS, MAX_DELAY_MS).
MIN_DELAY_MS = 300
MAX_DELAY_MS = 1000

# A walk step never asks the clock to wait less than this.
MIN_INTERVAL_SECONDS = 0.01

# Initial value of the walker's longest-duration high-water mark.
TIME_QUANTIZATION_STEP_MS = 100

# Playback
DEFAULT_VELOCITY = 0.2
DEFAULT_CHANNEL = 0

# MIDI standard range
MIN_MIDI_NOTE = 0
MAX_MIDI_NOTE = 127
MAX_MIDI_VELOCITY = 127
MIDI_CHANNELS = 16

# Controller numbers used when releasing notes
CC_ALL_NOTES_OFF = 123

# Recording: Standard MIDI File resolution and the tempo written to it.
RECORD_TICKS_PER_BEAT = 480
RECORD_BPM = 120

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


def midi_note_name (pitch: int) -> str:

	"""Convert a MIDI note number to a name, with C4 = 60.

	Examples: 60 → ``"C4"``, 69 → ``"A4"``, 42 → ``"F#2"``.
	"""

	octave = (pitch // 12) - 1
	return f"{NOTE_NAMES[pitch % 12]}{octave}"
