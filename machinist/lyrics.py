"""Seeded lyric lines for each section occurrence.

Words come from four vocabulary themes and are dropped into per-section
line templates. Every choice is made with :func:`machinist.rng.choice` and
an explicit seed offset, so a seed always yields the same sheet.
"""

import dataclasses
import datetime
import re
import typing

import machinist.rng
import machinist.sections


THEMES: typing.Dict[str, typing.Tuple[str, ...]] = {
	"existential": (
		"fractured", "dissolve", "beneath", "hollow", "spiral", "descend",
		"machine", "synthetic", "digital", "static", "void", "echo",
		"rust", "corrode", "decay", "fragment", "shatter", "erode",
	),
	"emotional": (
		"numb", "disconnect", "isolate", "suffocate", "drown", "bleed",
		"scar", "wound", "break", "tear", "rip", "crush",
	),
	"abstract": (
		"time", "space", "dimension", "reality", "existence", "consciousness",
		"illusion", "perception", "distortion", "reflection", "shadow", "light",
	),
	"industrial": (
		"steel", "wire", "circuit", "pulse", "frequency", "signal",
		"transmission", "feedback", "overload", "system", "malfunction", "glitch",
	),
}

TEMPLATES: typing.Dict[str, typing.Tuple[str, ...]] = {
	machinist.sections.VERSE: (
		"{abstract} {emotional} through {industrial}",
		"{existential} in the {abstract}",
		"I {emotional} as {industrial} {existential}",
		"The {abstract} {existential}, {emotional} within",
		"{industrial} {emotional} my {abstract}",
	),
	machinist.sections.CHORUS: (
		"{existential}! {existential}!",
		"We {emotional} in {industrial}",
		"{abstract} {existential} away",
		"Breaking down, {emotional}",
		"{industrial} {abstract} {emotional}",
	),
	machinist.sections.BRIDGE: (
		"Is this {abstract}?",
		"Where {industrial} meets {emotional}",
		"{existential} becomes {abstract}",
		"Lost in {industrial} {abstract}",
	),
}

INSTRUMENTAL_LINE = "[Instrumental]"
INSTRUMENTAL_SECTIONS = frozenset({machinist.sections.INTRO, machinist.sections.OUTRO, machinist.sections.INSTRUMENTAL})

LINE_COUNTS: typing.Dict[str, int] = {
	machinist.sections.VERSE: 4,
	machinist.sections.CHORUS: 3,
}
DEFAULT_LINE_COUNT = 2

EXPORT_TITLE = "Industrial Song - Lyrics"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

# Offsets inside one line's seed block; each placeholder slot gets its own.
_THEME_OFFSETS = {name: index * 7 for index, name in enumerate(THEMES)}
_SLOT_STRIDE = 31


@dataclasses.dataclass(frozen=True)
class SectionLyrics:

	"""The lines for one section occurrence."""

	section: str
	index: int
	lines: typing.Tuple[str, ...]

	@property
	def header (self) -> str:
		return f"[{self.section.upper()}]"


@dataclasses.dataclass(frozen=True)
class LyricSheet:

	"""Lyrics for a whole structure, in section order."""

	seed: int
	sections: typing.Tuple[SectionLyrics, ...]

	def lines_for (self, section_index: int) -> typing.Tuple[str, ...]:

		if 0 <= section_index < len(self.sections):
			return self.sections[section_index].lines

		return ()

	def current_line (self, section_index: int, beat: int) -> typing.Optional[str]:

		"""Return the line shown at ``beat`` of a section: slot ``(beat // 4) % line_count``."""

		lines = self.lines_for(section_index)

		if not lines:
			return None

		return lines[(beat // 4) % len(lines)]

	def plain_text (self) -> str:

		"""One ``[SECTION]`` header per occurrence, its lines, then a blank line."""

		text = ""

		for entry in self.sections:
			text += entry.header + "\n"
			for line in entry.lines:
				text += line + "\n"
			text += "\n"

		return text

	def export_text (self, generated_at: typing.Optional[datetime.datetime] = None) -> str:

		"""Plain text with a title line and generation timestamp in front."""

		stamp = (generated_at or datetime.datetime.now()).strftime("%Y-%m-%d %H:%M:%S")

		return f"{EXPORT_TITLE}\nGenerated: {stamp}\n\n" + self.plain_text()


def _fill_template (template: str, line_seed: int) -> str:

	slot = 0

	def replace (match: typing.Match[str]) -> str:
		nonlocal slot
		theme = match.group(1)
		word = machinist.rng.choice(THEMES[theme], line_seed + 10 + _THEME_OFFSETS[theme] + slot * _SLOT_STRIDE)
		slot += 1
		return word

	line = _PLACEHOLDER.sub(replace, template)

	return line[:1].upper() + line[1:]


def section_lines (section: str, index: int, seed: int) -> typing.Tuple[str, ...]:

	"""Generate the lines for one section occurrence."""

	if section in INSTRUMENTAL_SECTIONS:
		return (INSTRUMENTAL_LINE,)

	if section == machinist.sections.BREAKDOWN:
		word = machinist.rng.choice(THEMES["existential"], seed + index * 1000).upper()
		return (word, word, "...", word)

	templates = TEMPLATES.get(section, TEMPLATES[machinist.sections.VERSE])
	count = LINE_COUNTS.get(section, DEFAULT_LINE_COUNT)

	lines = []

	for i in range(count):
		line_seed = seed + index * 1000 + i * 100
		template = machinist.rng.choice(templates, line_seed)
		lines.append(_fill_template(template, line_seed))

	return tuple(lines)


def generate_lyrics (sections: typing.Sequence[str], seed: int) -> LyricSheet:

	"""Build a :class:`LyricSheet` for every occurrence in ``sections``."""

	return LyricSheet(
		seed = seed,
		sections = tuple(
			SectionLyrics(section=tag, index=index, lines=section_lines(tag, index, seed))
			for index, tag in enumerate(sections)
		)
	)
