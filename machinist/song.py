"""The result of one generation pass, shared by playback and export.

A :class:`Song` bundles the section list, the parameters and seed it was
generated with, the per-occurrence time signatures, the
:class:`~machinist.timeline.Timeline` and the
:class:`~machinist.lyrics.LyricSheet`. It is immutable; looping produces a
new one with :func:`vary_song`.
"""

import dataclasses
import logging
import math
import random
import typing

import machinist.lyrics
import machinist.rng
import machinist.sections
import machinist.timeline


logger = logging.getLogger(__name__)


MIN_TEMPO = 26
MAX_TEMPO = 140
MIN_INTENSITY = 1
MAX_INTENSITY = 10


@dataclasses.dataclass(frozen=True)
class Song:

	sections: typing.Tuple[str, ...]
	seed: int
	tempo: float
	intensity: int
	distortion: float
	length_multiplier: float
	odd_meters: bool
	table: machinist.sections.SectionTable
	timeline: machinist.timeline.Timeline
	lyrics: machinist.lyrics.LyricSheet

	@property
	def beat_seconds (self) -> float:
		return 60.0 / self.tempo

	def describe (self) -> str:

		return (
			f"seed {self.seed}, {len(self.sections)} sections, "
			f"{self.timeline.total_bars} bars, {self.timeline.total_beats:g} beats, "
			f"{self.timeline.total_duration:.1f}s at {self.tempo:g} BPM"
		)


def build_song (
	sections: typing.Sequence[str],
	seed: int,
	tempo: float = 70,
	intensity: int = 7,
	distortion: float = 60,
	length_multiplier: float = 1.0,
	table: machinist.sections.SectionTable = machinist.sections.DEFAULT_TABLE,
	odd_meters: bool = False
) -> Song:

	"""Run a generation pass: meters, timeline and lyrics, all from ``seed``."""

	tags = tuple(machinist.sections.normalize_tag(tag) for tag in sections)

	signatures = machinist.sections.section_time_signatures(tags, table, seed=seed, odd_meters=odd_meters)
	timeline = machinist.timeline.compute_timeline(tags, length_multiplier, tempo, table, signatures)
	lyrics = machinist.lyrics.generate_lyrics(tags, seed)

	song = Song(
		sections = tags,
		seed = seed,
		tempo = tempo,
		intensity = intensity,
		distortion = distortion,
		length_multiplier = length_multiplier,
		odd_meters = odd_meters,
		table = table,
		timeline = timeline,
		lyrics = lyrics
	)

	logger.info(f"Generated song: {song.describe()}")

	return song


def vary_song (song: Song, rng: random.Random, seed: typing.Optional[int] = None) -> Song:

	"""Make the next song for continuous looping.

	Always reseeds. Half the time a random preset replaces the structure, and
	some of those are shuffled with the intro kept first and the outro last.
	Sometimes tempo moves by up to 10 BPM and intensity by up to 2 steps.
	"""

	sections: typing.Sequence[str] = song.sections
	tempo = song.tempo
	intensity = song.intensity

	if rng.random() < 0.5:
		name = rng.choice(sorted(machinist.sections.PRESETS))
		sections = machinist.sections.preset(name)
		logger.info(f"Loop variation: structure '{name}'")

		if rng.random() < 0.3:
			sections = machinist.sections.shuffle_keeping_ends(sections, rng)
			logger.info("Loop variation: shuffled sections")

	if rng.random() < 0.4:
		tempo = max(MIN_TEMPO, min(MAX_TEMPO, tempo + math.floor((rng.random() - 0.5) * 20)))
		intensity = max(MIN_INTENSITY, min(MAX_INTENSITY, intensity + math.floor((rng.random() - 0.5) * 4)))
		logger.info(f"Loop variation: tempo {tempo:g}, intensity {intensity}")

	return build_song(
		sections,
		seed if seed is not None else machinist.rng.new_seed(),
		tempo = tempo,
		intensity = intensity,
		distortion = song.distortion,
		length_multiplier = song.length_multiplier,
		table = song.table,
		odd_meters = song.odd_meters
	)
