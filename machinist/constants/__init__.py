"""Constants for Machinist.

- ``machinist.constants`` - score resolution, MIDI channels, GM programs, voice kinds
- ``machinist.constants.gm_drums`` - General MIDI drum notes used by the drum voice
- ``machinist.constants.velocity`` - velocity bounds for generated notes
"""

# Score resolution. One quarter note = 480 ticks.
TICKS_PER_QUARTER = 480

# Zero-indexed MIDI channels, one per score voice. The tempo track has none.
BASS_CHANNEL = 0
LEAD_CHANNEL = 1
PAD_CHANNEL = 2
EFFECTS_CHANNEL = 3
VOCAL_CHANNEL = 4
DRUM_CHANNEL = 9

# General MIDI program numbers (zero-indexed).
PROGRAM_SYNTH_BASS_1 = 0x26
PROGRAM_SYNTH_LEAD = 0x50
PROGRAM_PAD_WARM = 0x59
PROGRAM_FX_ATMOSPHERE = 0x63
PROGRAM_VOICE_OOHS = 0x35

# Voice kinds handed to a sound host.
KICK = "kick"
SNARE = "snare"
HIHAT = "hihat"
BASS = "bass"
LEAD = "lead"
PAD = "pad"
ATMOSPHERE = "atmosphere"
GLITCH = "glitch"
VOCAL = "vocal"

VOICE_KINDS = (KICK, SNARE, HIHAT, BASS, LEAD, PAD, ATMOSPHERE, GLITCH, VOCAL)

# Fixed voice lengths in seconds for the one-shot kinds.
KICK_SECONDS = 0.2
SNARE_SECONDS = 0.1
HIHAT_SECONDS = 0.05
GLITCH_SECONDS = 0.05
ATMOSPHERE_SECONDS = 4.0
