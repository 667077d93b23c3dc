"""Section-specific note material for every voice.

Bass and lead lines start from a fixed table per section tag, get their
velocities scaled by intensity, and are then humanized note by note with
an :class:`~machinist.rng.LcgRandom` seeded at ``seed + note_index * 1000``:

1. **Pitch.** After a small step (1-3 semitones) from the previous note the
   line tends to keep moving the same way; otherwise it takes a weighted
   interval that is usually a small step and rarely a fifth or octave.
   Results are clamped to the 88-key range [21, 108].
2. **Velocity.** Uniform jitter of up to +/-5, clamped to [40, 127].
3. **Duration.** Scaled by a factor in [0.9, 1.1].

Rests (pitch 0) pass through as rests with velocity 0.

Drum hits, lead triggers, pad chords, atmosphere one-shots and vocal cues
are simple rules keyed by section tag and beat number.
"""

import dataclasses
import math
import typing

import machinist.constants
import machinist.constants.velocity
import machinist.rng
import machinist.sections


MIN_PITCH = 21
MAX_PITCH = 108

REST = 0

# Relative weights for the free interval choice: mostly steps, rare leaps.
PITCH_INTERVALS: typing.List[typing.Tuple[int, float]] = [
	(0, 0.22),
	(1, 0.12), (-1, 0.12),
	(2, 0.12), (-2, 0.12),
	(3, 0.11), (-3, 0.11),
	(4, 0.02), (-4, 0.02),
	(5, 0.02), (-5, 0.02),
	(7, 0.015), (-7, 0.015),
	(12, 0.01), (-12, 0.01),
]

STEPWISE_LIMIT = 3
STEPWISE_PROBABILITY = 0.6

# Seed layout: each voice gets its own block, each section occurrence a
# stride inside it, each note 1000 inside that.
NOTE_STRIDE = 1000
SECTION_STRIDE = 10000
VOICE_SEED_OFFSETS: typing.Dict[str, int] = {
	machinist.constants.BASS: 0,
	machinist.constants.LEAD: 5_000_000,
	machinist.constants.KICK: 10_000_000,
	machinist.constants.ATMOSPHERE: 15_000_000,
}


@dataclasses.dataclass(frozen=True)
class NoteEvent:

	"""One pattern slot.

	Attributes:
		pitch: MIDI note 0-127; 0 is a rest.
		velocity: MIDI velocity 0-127.
		duration: Length in quarter-note beats.
	"""

	pitch: int
	velocity: int
	duration: float

	@property
	def is_rest (self) -> bool:
		return self.pitch == REST


Pattern = typing.List[NoteEvent]


@dataclasses.dataclass(frozen=True)
class DrumHits:

	"""Which drums fire on one sixteenth step, and how hard (0.0-1.0)."""

	kick: bool
	snare: bool
	hihat: bool
	kick_velocity: float = 1.0
	snare_velocity: float = 1.0
	hihat_velocity: float = 0.7

	@property
	def any (self) -> bool:
		return self.kick or self.snare or self.hihat


def section_seed (seed: int, section_index: int, voice: str) -> int:

	"""Return the seed for one voice in one section occurrence."""

	return seed + VOICE_SEED_OFFSETS[voice] + section_index * SECTION_STRIDE


def _clamp (value: int, low: int, high: int) -> int:
	return max(low, min(high, value))


def _bass_table (section: str, seed: int) -> typing.Optional[typing.List[typing.Tuple[int, int, float]]]:

	"""Base bass line for a section as ``(pitch, velocity, duration)`` rows."""

	choice = machinist.rng.choice

	tables = {
		machinist.sections.INTRO: lambda: [
			(choice((36, 38, 41), seed), 60, 1.0),
			(choice((36, 38, 41), seed + 1), 50, 0.5),
			(choice((41, 43, 46), seed + 2), 55, 0.5),
			(choice((36, 38, 41), seed + 3), 60, 1.0),
			(choice((43, 46, 48), seed + 4), 55, 1.0),
		],
		machinist.sections.VERSE: lambda: [
			(36, 70, 0.5), (36, 60, 0.5), (41, 65, 0.5), (36, 70, 0.5),
			(43, 65, 0.5), (41, 60, 0.5), (36, 70, 0.5),
		],
		machinist.sections.CHORUS: lambda: [
			(36, 80, 0.25), (36, 75, 0.25), (48, 80, 0.5), (43, 75, 0.5),
			(41, 80, 0.5), (36, 85, 0.5), (36, 80, 0.5),
		],
		machinist.sections.PRE_CHORUS: lambda: [
			(36, 75, 0.8), (41, 70, 0.8), (43, 75, 0.8), (48, 70, 0.8), (43, 75, 0.8),
		],
		machinist.sections.BRIDGE: lambda: [
			(41, 70, 0.875), (43, 65, 0.875), (46, 70, 0.875), (48, 65, 0.875),
		],
		machinist.sections.OUTRO: lambda: [
			(36, 60, 2.0), (41, 50, 1.0), (36, 40, 1.0),
		],
		machinist.sections.INSTRUMENTAL: lambda: [
			(36, 85, 0.333), (36, 75, 0.333), (41, 80, 0.333), (43, 85, 0.5),
			(46, 80, 0.5), (48, 85, 0.5), (43, 80, 0.5), (41, 85, 0.5), (36, 90, 0.5),
		],
		machinist.sections.BREAKDOWN: lambda: [
			(36, 95, 1.0), (36, 90, 0.5), (31, 95, 0.5), (36, 95, 1.0), (29, 90, 2.0),
		],
	}

	build = tables.get(section)
	return build() if build is not None else None


def _lead_table (section: str, seed: int) -> typing.Optional[typing.List[typing.Tuple[int, int, float]]]:

	"""Base lead line for a section as ``(pitch, velocity, duration)`` rows."""

	choice = machinist.rng.choice

	tables = {
		machinist.sections.INTRO: lambda: [
			(REST, 0, 4.0),
		],
		machinist.sections.VERSE: lambda: [
			(choice((60, 62, 63), seed), 60, 0.5),
			(choice((65, 67, 68), seed + 1), 55, 0.5),
			(choice((60, 62, 63), seed + 2), 60, 0.5),
			(choice((58, 60), seed + 3), 55, 0.5),
			(choice((55, 57), seed + 4), 60, 0.5),
			(choice((58, 60), seed + 5), 55, 0.25),
			(choice((60, 62), seed + 6), 60, 0.25),
		],
		machinist.sections.CHORUS: lambda: [
			(72, 80, 0.5), (70, 75, 0.5), (67, 80, 0.5), (72, 85, 1.0),
			(75, 80, 0.5), (72, 75, 0.5), (70, 80, 0.5),
		],
		machinist.sections.PRE_CHORUS: lambda: [
			(63, 70, 0.8), (65, 75, 0.8), (67, 70, 0.8), (68, 75, 0.8), (67, 70, 0.8),
		],
		machinist.sections.BRIDGE: lambda: [
			(65, 65, 0.875), (67, 60, 0.875), (70, 65, 0.875), (72, 60, 0.875),
		],
		machinist.sections.INSTRUMENTAL: lambda: [
			(72, 85, 0.222), (75, 80, 0.222), (77, 85, 0.222), (79, 90, 0.333),
			(77, 85, 0.333), (75, 80, 0.333), (72, 85, 0.5), (70, 80, 0.5), (67, 85, 0.5),
		],
		machinist.sections.BREAKDOWN: lambda: [
			(48, 90, 1.0), (REST, 0, 0.5), (48, 95, 0.5), (REST, 0, 1.0), (46, 90, 2.0),
		],
		machinist.sections.OUTRO: lambda: [
			(60, 50, 2.0), (REST, 0, 1.0), (55, 40, 1.0),
		],
	}

	build = tables.get(section)
	return build() if build is not None else None


def scale_velocity (velocity: int, intensity: int) -> int:

	"""Shift a non-zero velocity by ``(intensity - 5) * 5``, clamped to [0, 127]."""

	if velocity == 0:
		return 0

	shift = (intensity - machinist.constants.velocity.NEUTRAL_INTENSITY) * machinist.constants.velocity.INTENSITY_VELOCITY_STEP

	return _clamp(velocity + shift, machinist.constants.velocity.MIN_VELOCITY, machinist.constants.velocity.MAX_VELOCITY)


def vary_pitch (pitch: int, previous_pitch: typing.Optional[int], rng: machinist.rng.RandomSource) -> int:

	"""Perturb one pitch, favouring continued stepwise motion.

	A repeated pitch (interval 0) has no direction, so it always takes the
	weighted interval branch.
	"""

	if previous_pitch is not None:
		interval = pitch - previous_pitch

		if interval != 0 and abs(interval) <= STEPWISE_LIMIT and rng.random() < STEPWISE_PROBABILITY:
			direction = 1 if interval > 0 else -1
			step = int(rng.random() * 3) * direction
			return _clamp(pitch + step, MIN_PITCH, MAX_PITCH)

	interval = machinist.rng.weighted_choice(PITCH_INTERVALS, rng)
	return _clamp(pitch + interval, MIN_PITCH, MAX_PITCH)


def humanize (base: typing.Sequence[NoteEvent], seed: int) -> Pattern:

	"""Apply pitch, velocity and duration variation to every slot of ``base``."""

	previous_pitch: typing.Optional[int] = None
	varied: Pattern = []

	for index, note in enumerate(base):

		rng = machinist.rng.LcgRandom(seed + index * NOTE_STRIDE)

		if note.is_rest:
			factor = 0.9 + rng.random() * 0.2
			varied.append(NoteEvent(pitch=REST, velocity=0, duration=note.duration * factor))
			continue

		pitch = vary_pitch(note.pitch, previous_pitch, rng)
		previous_pitch = pitch

		velocity = int(math.floor(note.velocity + (rng.random() - 0.5) * 10))
		velocity = _clamp(velocity, machinist.constants.velocity.MIN_NOTE_VELOCITY, machinist.constants.velocity.MAX_VELOCITY)

		duration = note.duration * (0.9 + rng.random() * 0.2)

		varied.append(NoteEvent(pitch=pitch, velocity=velocity, duration=duration))

	return varied


def _build (
	table_fn: typing.Callable[[str, int], typing.Optional[typing.List[typing.Tuple[int, int, float]]]],
	section: str,
	intensity: int,
	seed: int
) -> Pattern:

	rows = table_fn(section, seed)

	if rows is None:
		rows = table_fn(machinist.sections.VERSE, seed)
		assert rows is not None

	base = [
		NoteEvent(pitch=pitch, velocity=scale_velocity(velocity, intensity), duration=duration)
		for pitch, velocity, duration in rows
	]

	return humanize(base, seed)


def bass_pattern (section: str, intensity: int, seed: int) -> Pattern:

	"""Generate the humanized bass line for a section (unknown tags use ``verse``)."""

	return _build(_bass_table, section, intensity, seed)


def lead_pattern (section: str, intensity: int, seed: int) -> Pattern:

	"""Generate the humanized lead line for a section (unknown tags use ``verse``)."""

	return _build(_lead_table, section, intensity, seed)


def drum_hits (section: str, step: int, intensity: int, rng: machinist.rng.RandomSource) -> DrumHits:

	"""Decide the drum hits for one sixteenth ``step`` of a section.

	Draws from ``rng`` in a fixed order so the same stream gives the same
	groove.
	"""

	if section == machinist.sections.VERSE:
		kick = step % 4 == 0 or (step % 8 == 6 and rng.random() < 0.3)
		snare = step % 8 == 4
		hihat = step % 2 == 1 and intensity > 4

	elif section == machinist.sections.CHORUS:
		kick = step % 4 in (0, 2) or (step % 8 == 3 and rng.random() < 0.4)
		snare = step % 4 == 2 or (step % 8 == 7 and rng.random() < 0.3)
		hihat = intensity > 3

	elif section == machinist.sections.BREAKDOWN:
		kick = (step % 7 == 0 or step % 11 == 0) and rng.random() < 0.8
		snare = step % 13 == 4 and rng.random() < 0.6
		hihat = rng.random() < 0.2

	elif section == machinist.sections.BRIDGE:
		kick = step % 5 == 0 or step % 7 == 3
		snare = step % 7 == 4 or step % 5 == 3
		hihat = step % 3 == 1

	else:
		kick = step % 4 == 0
		snare = step % 8 == 4
		hihat = step % 2 == 1 and intensity > 5

	return DrumHits(
		kick = kick,
		snare = snare,
		hihat = hihat,
		kick_velocity = 0.7 + rng.random() * 0.3,
		snare_velocity = 0.6 + rng.random() * 0.4,
		hihat_velocity = 0.4 + rng.random() * 0.3
	)


def should_play_lead (section: str, beat: int, rng: machinist.rng.RandomSource) -> bool:

	"""Return True when the lead voice speaks on this beat."""

	if section == machinist.sections.CHORUS:
		return beat % 4 == 0 or (beat % 8 == 3 and rng.random() < 0.5)

	if section == machinist.sections.VERSE:
		return beat % 16 == 0 or (beat % 16 == 8 and rng.random() < 0.3)

	if section == machinist.sections.BRIDGE:
		return beat % 3 == 0 or beat % 5 == 0

	if section == machinist.sections.BREAKDOWN:
		return rng.random() < 0.15

	return False


# Cm, Bb, G, Ab voicings cycled by section index.
PAD_CHORDS: typing.Tuple[typing.Tuple[int, ...], ...] = (
	(48, 51, 55),
	(46, 50, 53),
	(43, 46, 50),
	(48, 52, 55),
)

PAD_SECTIONS = frozenset({machinist.sections.CHORUS, machinist.sections.BRIDGE, machinist.sections.BREAKDOWN})

# Longest a pad chord is held, in bars.
PAD_HOLD_BARS = 2


def pad_chord (section_index: int) -> typing.Tuple[int, ...]:
	return PAD_CHORDS[section_index % len(PAD_CHORDS)]


def pad_velocity (intensity: int) -> int:
	return _clamp(40 + intensity * 3, 1, machinist.constants.velocity.MAX_VELOCITY)


ATMOSPHERE_SECTIONS = frozenset({machinist.sections.INTRO, machinist.sections.BREAKDOWN, machinist.sections.OUTRO})


def atmosphere_note (rng: machinist.rng.RandomSource) -> typing.Tuple[int, int]:

	"""Return ``(pitch, hold_beats)`` for an atmospheric one-shot.

	Pitch lies in [48, 71]; the hold is 2-5 beats.
	"""

	pitch = 60 + int(math.floor(rng.random() * 24)) - 12
	hold_beats = 2 + int(math.floor(rng.random() * 4))

	return pitch, hold_beats


def atmosphere_velocity (intensity: int) -> int:
	return _clamp(30 + intensity * 2, 1, machinist.constants.velocity.MAX_VELOCITY)


def wants_atmosphere (section: str, beat: int, rng: machinist.rng.RandomSource) -> bool:

	"""Live rule for atmospheric swells: regular in breakdowns and intros, rare elsewhere."""

	if section == machinist.sections.BREAKDOWN and beat % 16 == 0:
		return True

	if section == machinist.sections.INTRO and beat % 32 == 0:
		return True

	return rng.random() < 0.02


# Beat interval between vocal cues, per section tag.
VOCAL_CUE_BEATS: typing.Dict[str, int] = {
	machinist.sections.CHORUS: 8,
	machinist.sections.VERSE: 16,
	machinist.sections.BRIDGE: 12,
	machinist.sections.BREAKDOWN: 4,
}


def should_vocalize (section: str, beat: int) -> bool:

	"""Return True when a vocal phrase starts on this beat."""

	interval = VOCAL_CUE_BEATS.get(section)
	return interval is not None and beat % interval == 0
