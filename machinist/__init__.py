"""
Machinist - seeded industrial song generation for Python.

Give Machinist a song structure (a list of sections such as intro, verse,
chorus, outro) and a seed, and it writes bass lines, lead lines, drums,
pads, atmospheric swells and lyrics for every section. The same seed
always gives the same song.

- **Deterministic.** Every note and every word comes from the seed, so a
  song can be regenerated, shared or exported later by its number alone.
- **One timeline.** Bar counts are rounded once per generation pass and
  shared by live playback and file export, so they never drift apart.
- **Standard MIDI export.** Format 1 files in a simple 3-track or a rich
  6-track layout (tempo, drums, bass, lead, pad, effects).
- **Live playback.** An asyncio scheduler steps through the song one beat
  at a time with groove and human timing, bounding the number of voices it
  keeps alive, and plays through a MIDI port or an OSC synthesizer.
- **Looping.** Continuous mode reseeds at the end of the song and may
  change structure, tempo and intensity for the next pass.

Minimal example:

    ```python
    import machinist

    composer = machinist.Composer(preset="industrial", tempo=90, intensity=8, seed=12345)
    composer.export_midi("song.mid", variant="rich")
    composer.export_lyrics("song.txt")
    ```

Package-level exports: ``Composer``, ``ConfigurationError``, ``HostUnavailableError``, ``TimeSignature``.
"""

import machinist.composer
import machinist.hosts
import machinist.sections


Composer = machinist.composer.Composer
ConfigurationError = machinist.composer.ConfigurationError
HostUnavailableError = machinist.hosts.HostUnavailableError
TimeSignature = machinist.sections.TimeSignature
