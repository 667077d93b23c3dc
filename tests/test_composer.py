import os
import random

import pytest

import machinist.composer
import machinist.midi_file
import machinist.scheduler
import machinist.sections

from conftest import FakeHost


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

def test_unknown_preset () -> None:

	"""An unknown preset name is a configuration error."""

	with pytest.raises(machinist.composer.ConfigurationError, match="industrial"):
		machinist.composer.Composer(preset="polka")


def test_empty_structure_cannot_generate () -> None:

	"""A song needs at least one section."""

	composer = machinist.composer.Composer(sections=[])

	with pytest.raises(machinist.composer.ConfigurationError):
		composer.generate()


@pytest.mark.parametrize("overrides", [
	{"tempo": 0},
	{"tempo": 2},
	{"tempo": 400},
	{"intensity": 11},
	{"intensity": 0},
	{"distortion": 101},
	{"length_multiplier": -1.0},
])
def test_out_of_range_parameters (overrides: dict) -> None:

	"""Parameters outside their ranges are refused before generating."""

	composer = machinist.composer.Composer(preset="simple", **overrides)

	with pytest.raises(machinist.composer.ConfigurationError):
		composer.generate()


def test_unknown_variant () -> None:

	"""Only the simple and rich layouts can be exported."""

	composer = machinist.composer.Composer(preset="simple", seed=1)

	with pytest.raises(machinist.composer.ConfigurationError):
		composer.score_bytes("deluxe")


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

def test_fixed_seed_is_reused () -> None:

	"""A configured seed gives the same song on every generate."""

	composer = machinist.composer.Composer(preset="simple", seed=12345)

	first = composer.generate()
	second = composer.generate()

	assert first.seed == 12345
	assert first == second


def test_seed_argument_wins () -> None:

	"""An explicit seed overrides the configured one."""

	composer = machinist.composer.Composer(preset="simple", seed=12345)

	assert composer.generate(seed=7).seed == 7


def test_set_sections_normalizes_and_clears_song () -> None:

	"""Editing the structure drops the generated song."""

	composer = machinist.composer.Composer(preset="simple", seed=1)
	composer.generate()
	composer.set_sections(["Intro", " OUTRO "])

	assert composer.sections == ["intro", "outro"]
	assert composer.song is None


def test_vary_updates_structure () -> None:

	"""Loop variation becomes the composer's current song and structure."""

	composer = machinist.composer.Composer(preset="simple", seed=1)
	song = composer.generate()
	composer._rng = random.Random(3)

	varied = composer._vary(song)

	assert composer.song is varied
	assert composer.sections == list(varied.sections)
	assert composer.parameters.tempo == varied.tempo


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def test_export_midi_writes_score (tmp_path) -> None:

	"""The exported file holds exactly the encoded score and nothing is left behind."""

	composer = machinist.composer.Composer(preset="simple", seed=42, tempo=90)
	target = composer.export_midi(tmp_path / "song.mid", variant=machinist.midi_file.RICH)

	assert target.read_bytes() == composer.score_bytes(machinist.midi_file.RICH)
	assert os.listdir(tmp_path) == ["song.mid"]


def test_failed_export_leaves_no_file (tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:

	"""If the final move fails, neither the target nor a temp file remains."""

	def broken (source: str, destination: str) -> None:
		raise OSError("disk full")

	monkeypatch.setattr(os, "replace", broken)

	composer = machinist.composer.Composer(preset="simple", seed=42)

	with pytest.raises(OSError):
		composer.export_midi(tmp_path / "song.mid")

	assert os.listdir(tmp_path) == []


def test_export_lyrics (tmp_path) -> None:

	"""Lyrics export has the title, a timestamp line and section headers."""

	composer = machinist.composer.Composer(sections=["intro", "verse"], seed=42)
	text = composer.export_lyrics(tmp_path / "lyrics.txt").read_text(encoding="utf-8")

	lines = text.splitlines()

	assert lines[0] == "Industrial Song - Lyrics"
	assert lines[1].startswith("Generated: ")
	assert "[INTRO]" in lines
	assert "[VERSE]" in lines


# ---------------------------------------------------------------------------
# Live playback
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_play_async_opens_plays_and_closes (short_table: machinist.sections.SectionTable) -> None:

	"""The host is opened, played through to the end, then closed."""

	host = FakeHost()
	composer = machinist.composer.Composer(sections=["intro", "verse"], table=short_table, tempo=120, seed=5)

	await composer.play_async(host, realtime=False)

	assert host.opened
	assert host.closed
	assert host.triggers
	assert composer.scheduler is not None
	assert composer.scheduler.state is machinist.scheduler.PlayState.IDLE


def test_crawling_tempo_is_a_configuration_error () -> None:

	"""A tempo too slow to store in a MIDI file is refused before encoding."""

	composer = machinist.composer.Composer(sections=["intro", "verse"], tempo=2, seed=1)

	with pytest.raises(machinist.composer.ConfigurationError):
		composer.score_bytes()
