"""Bar, beat and time layout of a song, computed once per generation pass.

Every consumer (live scheduler, score encoder, progress reporting) reads the
same :class:`Timeline`, so the rounded bar count of each section is derived
exactly once.
"""

import dataclasses
import math
import typing

import machinist.sections


@dataclasses.dataclass(frozen=True)
class SectionSpan:

	"""One section occurrence laid out on the song's beat axis.

	Attributes:
		index: Position in the section list.
		tag: Section tag.
		bars: Rounded bar count (``floor(base * multiplier + 0.5)``).
		time_signature: Meter for the whole occurrence.
		start_beat: Cumulative quarter-note beats before this section.
		start_time: Cumulative seconds before this section.
	"""

	index: int
	tag: str
	bars: int
	time_signature: machinist.sections.TimeSignature
	start_beat: float
	start_time: float
	tempo: float

	@property
	def beats_per_bar (self) -> float:
		return self.time_signature.beats_per_bar

	@property
	def beats (self) -> float:
		return self.bars * self.beats_per_bar

	@property
	def end_beat (self) -> float:
		return self.start_beat + self.beats

	@property
	def duration (self) -> float:
		return self.beats * 60.0 / self.tempo

	@property
	def live_beats (self) -> int:

		"""Whole beats the live scheduler steps through (a trailing half beat counts)."""

		return int(math.ceil(self.beats))


@dataclasses.dataclass(frozen=True)
class Timeline:

	"""The full layout: spans in order plus grand totals."""

	spans: typing.Tuple[SectionSpan, ...]
	tempo: float
	length_multiplier: float = 1.0

	def __len__ (self) -> int:
		return len(self.spans)

	@property
	def sections (self) -> typing.List[str]:
		return [span.tag for span in self.spans]

	@property
	def total_beats (self) -> float:
		return sum(span.beats for span in self.spans)

	@property
	def total_bars (self) -> int:
		return sum(span.bars for span in self.spans)

	@property
	def total_duration (self) -> float:

		"""Length in seconds: the sum of ``beats * 60 / tempo`` over all sections."""

		return sum(span.duration for span in self.spans)

	@property
	def total_live_beats (self) -> int:
		return sum(span.live_beats for span in self.spans)

	def span_at_beat (self, beat: float) -> typing.Optional[SectionSpan]:

		"""Return the span containing a global beat position, or None past the end."""

		for span in self.spans:
			if span.start_beat <= beat < span.end_beat:
				return span

		return None

	def progress (self, position: "TimelinePosition") -> float:

		"""Fraction of the song's live beats already played, in [0, 1]."""

		total = self.total_live_beats

		if total == 0:
			return 1.0

		return min(1.0, position.elapsed / total)


def compute_timeline (
	sections: typing.Sequence[str],
	length_multiplier: float = 1.0,
	tempo: float = 70,
	table: machinist.sections.SectionTable = machinist.sections.DEFAULT_TABLE,
	time_signatures: typing.Optional[typing.Sequence[machinist.sections.TimeSignature]] = None
) -> Timeline:

	"""Lay out ``sections`` on a beat and time axis.

	Parameters:
		sections: Ordered section tags.
		length_multiplier: Scales every base bar count before rounding.
		tempo: Quarter-note beats per minute.
		table: Bar counts and default meters per tag.
		time_signatures: Optional meter per occurrence (as chosen by
			:func:`machinist.sections.section_time_signatures`); defaults to
			the table's meter for each tag.
	"""

	if tempo <= 0:
		raise ValueError("Tempo must be positive")

	if length_multiplier <= 0:
		raise ValueError("Length multiplier must be positive")

	if time_signatures is not None and len(time_signatures) != len(sections):
		raise ValueError("Need exactly one time signature per section")

	spans = []
	start_beat = 0.0
	start_time = 0.0

	for index, tag in enumerate(sections):

		# Round half up, once.
		bars = int(math.floor(table.bars_for(tag) * length_multiplier + 0.5))

		signature = time_signatures[index] if time_signatures is not None else table.time_signature_for(tag)

		span = SectionSpan(
			index = index,
			tag = tag,
			bars = bars,
			time_signature = signature,
			start_beat = start_beat,
			start_time = start_time,
			tempo = tempo
		)

		spans.append(span)
		start_beat += span.beats
		start_time += span.duration

	return Timeline(spans=tuple(spans), tempo=tempo, length_multiplier=length_multiplier)


@dataclasses.dataclass(frozen=True)
class TimelinePosition:

	"""Where the live scheduler is: section index, beat inside it, beats elapsed overall."""

	section_index: int = 0
	beat: int = 0
	elapsed: int = 0


START = TimelinePosition()


def settle (timeline: Timeline, position: TimelinePosition) -> TimelinePosition:

	"""Move past any sections with no beats so the position points at something playable."""

	section_index = position.section_index
	beat = position.beat

	while section_index < len(timeline.spans) and beat >= timeline.spans[section_index].live_beats:
		section_index += 1
		beat = 0

	if section_index == position.section_index and beat == position.beat:
		return position

	return TimelinePosition(section_index=section_index, beat=beat, elapsed=position.elapsed)


def advance (timeline: Timeline, position: TimelinePosition) -> TimelinePosition:

	"""Return the position one beat later; never mutates ``position``."""

	stepped = TimelinePosition(
		section_index = position.section_index,
		beat = position.beat + 1,
		elapsed = position.elapsed + 1
	)

	return settle(timeline, stepped)


def is_finished (timeline: Timeline, position: TimelinePosition) -> bool:
	return position.section_index >= len(timeline.spans)
