"""MIDI velocity constants.

Velocity is the MIDI attack strength (0-127). Generated melodic notes are
kept between ``MIN_NOTE_VELOCITY`` and ``MAX_VELOCITY``; rests carry 0.
"""

MIN_VELOCITY = 0
MAX_VELOCITY = 127

# Floor for humanized, sounding notes
MIN_NOTE_VELOCITY = 40

# Velocity change per intensity step away from the neutral intensity of 5
INTENSITY_VELOCITY_STEP = 5
NEUTRAL_INTENSITY = 5
