import dataclasses

import machinist.rng


@dataclasses.dataclass
class TimingFeel:

	"""
	Per-beat timing offsets for live playback.

	Odd beats are pushed late by a fixed fraction of the beat (the groove
	bias), and every beat gets a small symmetric random push or pull on top.
	Offsets are returned in seconds and are never negative, since a beat
	cannot sound before its own scheduling step.

	Parameters:
		groove: Delay applied to odd beats, as a fraction of a beat.
		jitter: Width of the symmetric random jitter, as a fraction of a
			beat. A value of 0.015 gives offsets within +/-0.0075 beats.

	Example::

		feel = TimingFeel()
		delay = feel.offset_seconds(beat=3, beat_seconds=0.5, rng=random.Random(1))
	"""

	groove: float = 0.02
	jitter: float = 0.015

	def __post_init__ (self) -> None:
		if self.groove < 0:
			raise ValueError("groove must not be negative")
		if self.jitter < 0:
			raise ValueError("jitter must not be negative")

	def offset_beats (self, beat: int, rng: machinist.rng.RandomSource) -> float:

		"""Raw offset in beats; may be slightly negative on even beats."""

		bias = self.groove if beat % 2 == 1 else 0.0
		return bias + (rng.random() - 0.5) * self.jitter

	def offset_seconds (self, beat: int, beat_seconds: float, rng: machinist.rng.RandomSource) -> float:
		return max(0.0, self.offset_beats(beat, rng) * beat_seconds)


STRAIGHT = TimingFeel(groove=0.0, jitter=0.0)
