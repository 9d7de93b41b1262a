"""Global constants for Live Song Analyzer."""

# Pitch names
PITCH_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Audio processing defaults
DEFAULT_SR = 44100
DEFAULT_FFT_SIZE = 2048
DEFAULT_WINDOW = "boxcar"

# Detection defaults
DEFAULT_PITCH_BAND = (80.0, 2000.0)
QUIET_FLOOR = 0.01
NOTE_TOLERANCE_LOG2 = 0.1  # literal threshold, much looser than 12 cents
CHORD_TIMEOUT_MS = 2000
CHORD_QUIESCENCE_MS = 500
SNAPSHOT_INTERVAL_MS = 1000

# Note table range (C1 to B8)
TABLE_MIN_OCTAVE = 1
TABLE_MAX_OCTAVE = 8

# Musical defaults
DEFAULT_TEMPO = 120
MIN_TEMPO = 60
MAX_TEMPO = 200

# MIDI ranges
MIDI_MIN = 0
MIDI_MAX = 127
MIDDLE_C = 60
