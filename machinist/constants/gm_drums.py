"""General MIDI drum notes used by the drum voice.

The drum voice owns one channel (zero-indexed channel 9) and tells kick,
snare and hi-hat apart by note number.
"""

KICK_1 = 36
SNARE_1 = 38
HI_HAT_CLOSED = 42
HI_HAT_OPEN = 46
CRASH_1 = 49
