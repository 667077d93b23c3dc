"""Standard MIDI File (format 1) encoding of a generated song.

The bytes are assembled by hand so every track chunk's declared length can
be checked against its body: a chunk is ``"MTrk"``, a 4-byte big-endian
length patched after the body is complete, then delta-time-prefixed events
ending with the end-of-track meta event at delta zero.

Two variants exist:

- ``simple``: tempo, bass, lead (3 tracks).
- ``rich``: tempo, drums, bass, lead, pad, effects (6 tracks).

Bass and lead patterns are regenerated for every section occurrence with
that occurrence's seed and replayed once per bar on the bar grid, so the
score is exactly as long as the :class:`~machinist.timeline.Timeline`.
The resulting bytes parse with :class:`mido.MidiFile`; :func:`read_score`
does exactly that.
"""

import io
import logging
import math
import struct
import typing

import mido

import machinist.constants
import machinist.constants.gm_drums
import machinist.patterns
import machinist.rng
import machinist.sections
import machinist.timeline


logger = logging.getLogger(__name__)


HEADER_TAG = b"MThd"
TRACK_TAG = b"MTrk"
FORMAT_MULTI_TRACK = 1
END_OF_TRACK = b"\xff\x2f\x00"

META_SET_TEMPO = 0x51
META_TIME_SIGNATURE = 0x58
META_TRACK_NAME = 0x03

# Set-tempo carries microseconds per quarter note in three bytes.
MAX_TEMPO_MICROSECONDS = 0xFFFFFF

NOTE_ON = 0x90
NOTE_OFF = 0x80
PROGRAM_CHANGE = 0xC0

SIMPLE = "simple"
RICH = "rich"
VARIANTS = (SIMPLE, RICH)

# Drum hits are short fixed-length strikes on a sixteenth grid.
DRUM_HIT_TICKS = 60
STEPS_PER_QUARTER = 4
OPEN_HAT_THRESHOLD = 0.8


def encode_variable_length (value: int) -> bytes:

	"""Encode a non-negative integer as a MIDI variable-length quantity.

	Seven payload bits per byte, most significant group first, with the high
	bit set on every byte except the last. Zero encodes as ``b"\\x00"``.
	"""

	if value < 0:
		raise ValueError("Variable-length quantities cannot be negative")

	groups = [value & 0x7F]
	value >>= 7

	while value:
		groups.append((value & 0x7F) | 0x80)
		value >>= 7

	return bytes(reversed(groups))


def decode_variable_length (data: bytes, offset: int = 0) -> typing.Tuple[int, int]:

	"""Decode a variable-length quantity starting at ``offset``.

	Returns:
		``(value, next_offset)``.
	"""

	value = 0

	while True:
		if offset >= len(data):
			raise ValueError("Truncated variable-length quantity")

		byte = data[offset]
		offset += 1
		value = (value << 7) | (byte & 0x7F)

		if not byte & 0x80:
			return value, offset


def header_chunk (track_count: int, ticks_per_quarter: int = machinist.constants.TICKS_PER_QUARTER) -> bytes:

	"""Return the 14-byte ``MThd`` chunk for a format 1 file."""

	return HEADER_TAG + struct.pack(">IHHH", 6, FORMAT_MULTI_TRACK, track_count, ticks_per_quarter)


def beats_to_ticks (beats: float) -> int:
	return int(round(beats * machinist.constants.TICKS_PER_QUARTER))


class TrackWriter:

	"""Accumulates one track's events with running delta times.

	Rests only add to the pending delta; the next event written carries it.
	"""

	def __init__ (self, name: typing.Optional[str] = None) -> None:

		self._body = bytearray()
		self._pending = 0

		if name:
			self.meta(META_TRACK_NAME, name.encode("ascii"))

	def rest (self, ticks: int) -> None:

		if ticks < 0:
			raise ValueError("Cannot rest for a negative number of ticks")

		self._pending += ticks

	def event (self, data: bytes) -> None:

		self._body += encode_variable_length(self._pending)
		self._body += data
		self._pending = 0

	def meta (self, meta_type: int, data: bytes) -> None:
		self.event(bytes([0xFF, meta_type]) + encode_variable_length(len(data)) + data)

	def program_change (self, channel: int, program: int) -> None:
		self.event(bytes([PROGRAM_CHANGE | channel, program]))

	def note_on (self, channel: int, pitch: int, velocity: int) -> None:
		self.event(bytes([NOTE_ON | channel, pitch, velocity]))

	def note_off (self, channel: int, pitch: int) -> None:
		self.event(bytes([NOTE_OFF | channel, pitch, 0]))

	def note (self, channel: int, pitch: int, velocity: int, ticks: int) -> None:

		"""Write a note-on/note-off pair ``ticks`` apart."""

		self.chord(channel, (pitch,), velocity, ticks)

	def chord (self, channel: int, pitches: typing.Sequence[int], velocity: int, ticks: int) -> None:

		for pitch in pitches:
			self.note_on(channel, pitch, velocity)

		self.rest(ticks)

		for pitch in pitches:
			self.note_off(channel, pitch)

	def finish (self) -> bytes:

		"""Close the track and return the complete chunk.

		The end-of-track marker sits at delta zero, so any trailing rest is
		dropped. The length field is patched once the body is complete.
		"""

		self._pending = 0
		self.event(END_OF_TRACK)

		chunk = bytearray(TRACK_TAG + b"\x00\x00\x00\x00")
		chunk += self._body
		struct.pack_into(">I", chunk, 4, len(chunk) - 8)

		return bytes(chunk)


def _bar_ticks (span: machinist.timeline.SectionSpan) -> int:
	return beats_to_ticks(span.beats_per_bar)


def _span_ticks (span: machinist.timeline.SectionSpan) -> int:
	return _bar_ticks(span) * span.bars


def _time_signature_data (signature: machinist.sections.TimeSignature) -> bytes:

	"""Meta event payload: numerator, log2(denominator), 24 clocks per click, 8 32nds per quarter."""

	return bytes([signature.numerator, int(math.log2(signature.denominator)), 24, 8])


def tempo_track (timeline: machinist.timeline.Timeline) -> bytes:

	"""Set-tempo meta event, then a time signature at the start of each section."""

	microseconds = mido.bpm2tempo(timeline.tempo)

	if not 0 < microseconds <= MAX_TEMPO_MICROSECONDS:
		raise ValueError(f"Tempo {timeline.tempo} BPM cannot be stored in a set-tempo event")

	writer = TrackWriter("Tempo")
	writer.meta(META_SET_TEMPO, microseconds.to_bytes(3, "big"))

	for span in timeline.spans:
		if span.bars > 0:
			writer.meta(META_TIME_SIGNATURE, _time_signature_data(span.time_signature))
		writer.rest(_span_ticks(span))

	return writer.finish()


def _write_pattern_bar (writer: TrackWriter, channel: int, pattern: machinist.patterns.Pattern, bar_ticks: int) -> None:

	"""Lay one pass of ``pattern`` into a bar: truncate the overflow, rest out the rest."""

	cursor = 0

	for note in pattern:

		if cursor >= bar_ticks:
			break

		length = min(max(1, beats_to_ticks(note.duration)), bar_ticks - cursor)

		if note.is_rest:
			writer.rest(length)
		else:
			writer.note(channel, note.pitch, note.velocity, length)

		cursor += length

	if cursor < bar_ticks:
		writer.rest(bar_ticks - cursor)


def _melodic_track (
	timeline: machinist.timeline.Timeline,
	name: str,
	channel: int,
	program: int,
	voice: str,
	generate: typing.Callable[[str, int, int], machinist.patterns.Pattern],
	intensity: int,
	seed: int
) -> bytes:

	writer = TrackWriter(name)
	writer.program_change(channel, program)

	for span in timeline.spans:

		if span.bars == 0:
			continue

		pattern = generate(span.tag, intensity, machinist.patterns.section_seed(seed, span.index, voice))
		bar_ticks = _bar_ticks(span)

		for _ in range(span.bars):
			_write_pattern_bar(writer, channel, pattern, bar_ticks)

	return writer.finish()


def bass_track (timeline: machinist.timeline.Timeline, intensity: int, seed: int) -> bytes:

	return _melodic_track(
		timeline, "Bass",
		machinist.constants.BASS_CHANNEL, machinist.constants.PROGRAM_SYNTH_BASS_1,
		machinist.constants.BASS, machinist.patterns.bass_pattern,
		intensity, seed
	)


def lead_track (timeline: machinist.timeline.Timeline, intensity: int, seed: int) -> bytes:

	return _melodic_track(
		timeline, "Lead",
		machinist.constants.LEAD_CHANNEL, machinist.constants.PROGRAM_SYNTH_LEAD,
		machinist.constants.LEAD, machinist.patterns.lead_pattern,
		intensity, seed
	)


def _strike_velocity (scale: int, strength: float) -> int:
	return max(1, min(127, int(math.floor(scale * strength))))


def drum_track (timeline: machinist.timeline.Timeline, intensity: int, seed: int) -> bytes:

	"""Kick, snare and hi-hat on a sixteenth grid, using the section hit rules."""

	channel = machinist.constants.DRUM_CHANNEL
	step_ticks = machinist.constants.TICKS_PER_QUARTER // STEPS_PER_QUARTER

	writer = TrackWriter("Drums")

	for span in timeline.spans:

		rng = machinist.rng.LcgRandom(machinist.patterns.section_seed(seed, span.index, machinist.constants.KICK))
		steps = int(round(span.beats * STEPS_PER_QUARTER))

		for step in range(steps):

			hits = machinist.patterns.drum_hits(span.tag, step, intensity, rng)
			strikes = []

			if hits.kick:
				strikes.append((machinist.constants.gm_drums.KICK_1, _strike_velocity(80, hits.kick_velocity)))

			if hits.snare:
				strikes.append((machinist.constants.gm_drums.SNARE_1, _strike_velocity(70, hits.snare_velocity)))

			if hits.hihat:
				is_open = rng.random() > OPEN_HAT_THRESHOLD
				pitch = machinist.constants.gm_drums.HI_HAT_OPEN if is_open else machinist.constants.gm_drums.HI_HAT_CLOSED
				strikes.append((pitch, _strike_velocity(50, hits.hihat_velocity)))

			if not strikes:
				writer.rest(step_ticks)
				continue

			for pitch, velocity in strikes:
				writer.note_on(channel, pitch, velocity)

			writer.rest(DRUM_HIT_TICKS)

			for pitch, _ in strikes:
				writer.note_off(channel, pitch)

			writer.rest(step_ticks - DRUM_HIT_TICKS)

	return writer.finish()


def pad_track (timeline: machinist.timeline.Timeline, intensity: int, seed: int) -> bytes:

	"""Sustained minor chords at the top of chorus, bridge and breakdown sections."""

	channel = machinist.constants.PAD_CHANNEL
	velocity = machinist.patterns.pad_velocity(intensity)

	writer = TrackWriter("Pad")
	writer.program_change(channel, machinist.constants.PROGRAM_PAD_WARM)

	for span in timeline.spans:

		span_ticks = _span_ticks(span)

		if span.tag in machinist.patterns.PAD_SECTIONS and span_ticks > 0:
			hold = min(_bar_ticks(span) * machinist.patterns.PAD_HOLD_BARS, span_ticks)
			writer.chord(channel, machinist.patterns.pad_chord(span.index), velocity, hold)
			writer.rest(span_ticks - hold)
		else:
			writer.rest(span_ticks)

	return writer.finish()


def effects_track (timeline: machinist.timeline.Timeline, intensity: int, seed: int) -> bytes:

	"""One atmospheric note at the top of each intro, breakdown and outro."""

	channel = machinist.constants.EFFECTS_CHANNEL
	velocity = machinist.patterns.atmosphere_velocity(intensity)

	writer = TrackWriter("Effects")
	writer.program_change(channel, machinist.constants.PROGRAM_FX_ATMOSPHERE)

	for span in timeline.spans:

		span_ticks = _span_ticks(span)

		if span.tag in machinist.patterns.ATMOSPHERE_SECTIONS and span_ticks > 0:
			rng = machinist.rng.LcgRandom(machinist.patterns.section_seed(seed, span.index, machinist.constants.ATMOSPHERE))
			pitch, hold_beats = machinist.patterns.atmosphere_note(rng)
			hold = min(beats_to_ticks(hold_beats), span_ticks)
			writer.note(channel, pitch, velocity, hold)
			writer.rest(span_ticks - hold)
		else:
			writer.rest(span_ticks)

	return writer.finish()


def encode_score (
	sections: typing.Sequence[str],
	tempo: float,
	intensity: int,
	length_multiplier: float,
	seed: int,
	variant: str = SIMPLE,
	timeline: typing.Optional[machinist.timeline.Timeline] = None,
	table: machinist.sections.SectionTable = machinist.sections.DEFAULT_TABLE
) -> bytes:

	"""Encode a whole song as Standard MIDI File bytes.

	Parameters:
		sections: Ordered section tags.
		tempo: Beats per minute.
		intensity: 1-10; shifts velocities and enables busier drums.
		length_multiplier: Scales base bar counts.
		seed: Root seed; each voice and section derives its own from it.
		variant: ``"simple"`` (3 tracks) or ``"rich"`` (6 tracks).
		timeline: A precomputed timeline to encode against. When omitted
			one is computed from ``sections``, ``length_multiplier`` and
			``tempo`` using ``table``.
	"""

	if variant not in VARIANTS:
		raise ValueError(f"Unknown score variant '{variant}', expected one of {', '.join(VARIANTS)}")

	if timeline is None:
		timeline = machinist.timeline.compute_timeline(sections, length_multiplier, tempo, table)

	elif timeline.sections != list(sections):
		raise ValueError("Timeline does not match the section list")

	if variant == SIMPLE:
		tracks = [
			tempo_track(timeline),
			bass_track(timeline, intensity, seed),
			lead_track(timeline, intensity, seed),
		]
	else:
		tracks = [
			tempo_track(timeline),
			drum_track(timeline, intensity, seed),
			bass_track(timeline, intensity, seed),
			lead_track(timeline, intensity, seed),
			pad_track(timeline, intensity, seed),
			effects_track(timeline, intensity, seed),
		]

	data = header_chunk(len(tracks)) + b"".join(tracks)

	logger.debug(f"Encoded {variant} score: {len(tracks)} tracks, {len(data)} bytes")

	return data


def iter_chunks (data: bytes) -> typing.Iterator[typing.Tuple[bytes, bytes]]:

	"""Yield ``(tag, chunk)`` for every chunk in ``data``, each chunk including its 8-byte prefix."""

	offset = 0

	while offset < len(data):

		if offset + 8 > len(data):
			raise ValueError("Truncated chunk header")

		tag = data[offset:offset + 4]
		(length,) = struct.unpack_from(">I", data, offset + 4)
		end = offset + 8 + length

		if end > len(data):
			raise ValueError(f"Chunk {tag!r} declares {length} bytes but only {len(data) - offset - 8} remain")

		yield tag, data[offset:end]
		offset = end


def read_score (data: bytes) -> mido.MidiFile:

	"""Parse encoded score bytes back into a :class:`mido.MidiFile`."""

	return mido.MidiFile(file=io.BytesIO(data))
