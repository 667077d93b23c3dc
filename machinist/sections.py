"""Song sections, time signatures, and the structure editor's lookup tables.

A song is an ordered list of section tags (``"intro"``, ``"verse"``, ...).
Each tag has a default bar count and time signature held in a
:class:`SectionTable`. The table is a read-only snapshot taken at
generation time; overriding a value returns a new table.

Unknown tags are never an error: they get 8 bars of 4/4 here and the
``verse`` material in :mod:`machinist.patterns`.
"""

import dataclasses
import logging
import random
import types
import typing

import machinist.rng


logger = logging.getLogger(__name__)


INTRO = "intro"
VERSE = "verse"
PRE_CHORUS = "pre-chorus"
CHORUS = "chorus"
BRIDGE = "bridge"
INSTRUMENTAL = "instrumental"
BREAKDOWN = "breakdown"
OUTRO = "outro"

SECTION_TAGS: typing.Tuple[str, ...] = (
	INTRO,
	VERSE,
	PRE_CHORUS,
	CHORUS,
	BRIDGE,
	INSTRUMENTAL,
	BREAKDOWN,
	OUTRO,
)

FALLBACK_BARS = 8


@dataclasses.dataclass(frozen=True)
class TimeSignature:

	"""A meter such as 4/4 or 7/8.

	Attributes:
		numerator: Beats per bar in units of the denominator.
		denominator: Note value of one beat; must be a power of two.
	"""

	numerator: int
	denominator: int

	def __post_init__ (self) -> None:
		if self.numerator <= 0:
			raise ValueError("Time signature numerator must be positive")
		if self.denominator <= 0 or self.denominator & (self.denominator - 1):
			raise ValueError(f"Time signature denominator must be a power of two, got {self.denominator}")

	@property
	def beats_per_bar (self) -> float:

		"""Bar length in quarter-note beats (7/8 -> 3.5)."""

		return self.numerator / (self.denominator / 4)

	def __str__ (self) -> str:
		return f"{self.numerator}/{self.denominator}"


COMMON_TIME = TimeSignature(4, 4)

DEFAULT_BARS: typing.Dict[str, int] = {
	INTRO: 8,
	VERSE: 16,
	PRE_CHORUS: 8,
	CHORUS: 16,
	BRIDGE: 12,
	BREAKDOWN: 8,
	INSTRUMENTAL: 8,
	OUTRO: 8,
}

DEFAULT_TIME_SIGNATURES: typing.Dict[str, TimeSignature] = {
	INTRO: COMMON_TIME,
	VERSE: COMMON_TIME,
	PRE_CHORUS: COMMON_TIME,
	CHORUS: COMMON_TIME,
	BRIDGE: COMMON_TIME,
	BREAKDOWN: TimeSignature(7, 8),
	INSTRUMENTAL: COMMON_TIME,
	OUTRO: COMMON_TIME,
}

# Meters the odd-meter variation may swap into a verse or bridge.
ODD_METERS: typing.Tuple[TimeSignature, ...] = (
	TimeSignature(5, 4),
	TimeSignature(7, 8),
	TimeSignature(9, 8),
	TimeSignature(6, 8),
)

ODD_METER_SECTIONS = frozenset({VERSE, BRIDGE})

PRESETS: typing.Dict[str, typing.Tuple[str, ...]] = {
	"standard": (
		INTRO, INTRO, VERSE, VERSE, INSTRUMENTAL, CHORUS, CHORUS,
		VERSE, INSTRUMENTAL, CHORUS, CHORUS, BRIDGE, CHORUS, CHORUS, OUTRO,
	),
	"simple": (
		INTRO, VERSE, VERSE, CHORUS, CHORUS, VERSE, CHORUS, OUTRO,
	),
	"extended": (
		INTRO, INTRO, VERSE, PRE_CHORUS, CHORUS, INSTRUMENTAL,
		VERSE, PRE_CHORUS, CHORUS, CHORUS, BRIDGE, BREAKDOWN,
		CHORUS, CHORUS, OUTRO, OUTRO,
	),
	"industrial": (
		INTRO, BREAKDOWN, VERSE, BREAKDOWN, CHORUS, INSTRUMENTAL,
		BREAKDOWN, VERSE, BREAKDOWN, CHORUS, BRIDGE, BREAKDOWN, OUTRO,
	),
}


def normalize_tag (tag: str) -> str:

	"""Lower-case a tag and trim whitespace; ``"Pre-Chorus "`` -> ``"pre-chorus"``."""

	return tag.strip().lower()


def preset (name: str) -> typing.List[str]:

	"""Return a copy of a named structure preset."""

	if name not in PRESETS:
		known = ", ".join(sorted(PRESETS))
		raise ValueError(f"Unknown structure preset '{name}'. Known presets: {known}")

	return list(PRESETS[name])


@dataclasses.dataclass(frozen=True)
class SectionTable:

	"""Read-only per-tag bar counts and time signatures.

	This is the snapshot the structure editor hands to the core. Lookups for
	tags missing from the table fall back to 8 bars and 4/4.
	"""

	bars: typing.Mapping[str, int] = dataclasses.field(default_factory=lambda: types.MappingProxyType(dict(DEFAULT_BARS)))
	time_signatures: typing.Mapping[str, TimeSignature] = dataclasses.field(default_factory=lambda: types.MappingProxyType(dict(DEFAULT_TIME_SIGNATURES)))

	def bars_for (self, tag: str) -> int:

		"""Return the base bar count for a tag."""

		return self.bars.get(tag, FALLBACK_BARS)

	def time_signature_for (self, tag: str) -> TimeSignature:

		"""Return the default time signature for a tag."""

		return self.time_signatures.get(tag, COMMON_TIME)

	def with_overrides (
		self,
		bars: typing.Optional[typing.Mapping[str, int]] = None,
		time_signatures: typing.Optional[typing.Mapping[str, TimeSignature]] = None
	) -> "SectionTable":

		"""Return a new table with some entries replaced."""

		merged_bars = dict(self.bars)
		merged_signatures = dict(self.time_signatures)

		for tag, count in (bars or {}).items():
			if count < 0:
				raise ValueError(f"Bar count for '{tag}' cannot be negative")
			merged_bars[normalize_tag(tag)] = int(count)

		for tag, signature in (time_signatures or {}).items():
			merged_signatures[normalize_tag(tag)] = signature

		return SectionTable(
			bars = types.MappingProxyType(merged_bars),
			time_signatures = types.MappingProxyType(merged_signatures)
		)

	def summary (self, sections: typing.Sequence[str], tempo: float = 70) -> str:

		"""Describe a structure the way the editor's info line does."""

		total_bars = sum(self.bars_for(tag) for tag in sections)
		approx_minutes = round((total_bars * 4 * 60) / (tempo * 60)) if tempo > 0 else 0

		return f"{len(sections)} sections, ~{total_bars} bars, ~{approx_minutes} minutes"


DEFAULT_TABLE = SectionTable()


def section_time_signatures (
	sections: typing.Sequence[str],
	table: SectionTable = DEFAULT_TABLE,
	seed: typing.Optional[int] = None,
	odd_meters: bool = False
) -> typing.List[TimeSignature]:

	"""Pick a time signature for every section occurrence.

	Without ``odd_meters`` this is the table lookup. With it, each verse and
	bridge occurrence has an even chance of switching to one of
	:data:`ODD_METERS`, decided by ``seed`` so the choice is reproducible.
	"""

	signatures = []

	for index, tag in enumerate(sections):
		signature = table.time_signature_for(tag)

		if odd_meters and seed is not None and tag in ODD_METER_SECTIONS:
			occurrence_seed = seed + index * 10000 + 7
			if machinist.rng.rand(occurrence_seed) > 0.5:
				signature = machinist.rng.choice(ODD_METERS, occurrence_seed + 1)
				logger.debug(f"Section {index} ({tag}) switched to {signature}")

		signatures.append(signature)

	return signatures


def shuffle_keeping_ends (sections: typing.Sequence[str], rng: random.Random) -> typing.List[str]:

	"""Shuffle a structure but keep one intro first and one outro last.

	Further intro/outro occurrences are dropped, as in the editor's loop
	variation.
	"""

	shuffled = list(sections)
	rng.shuffle(shuffled)

	middle = [tag for tag in shuffled if tag not in (INTRO, OUTRO)]

	if INTRO in shuffled:
		middle.insert(0, INTRO)

	if OUTRO in shuffled:
		middle.append(OUTRO)

	return middle
