import random

import pytest

import machinist.sections


def test_beats_per_bar_normalises_to_quarters () -> None:

	"""7/8 is 3.5 quarter beats, 6/8 is 3, 5/4 is 5."""

	assert machinist.sections.TimeSignature(7, 8).beats_per_bar == 3.5
	assert machinist.sections.TimeSignature(6, 8).beats_per_bar == 3.0
	assert machinist.sections.TimeSignature(5, 4).beats_per_bar == 5.0


def test_time_signature_requires_power_of_two () -> None:

	"""Denominators that are not powers of two are rejected."""

	with pytest.raises(ValueError):
		machinist.sections.TimeSignature(4, 6)

	with pytest.raises(ValueError):
		machinist.sections.TimeSignature(0, 4)


def test_time_signature_str () -> None:

	"""Signatures print as n/d."""

	assert str(machinist.sections.TimeSignature(9, 8)) == "9/8"


def test_default_table_values () -> None:

	"""Editor defaults: verse 16 bars, bridge 12, breakdown in 7/8."""

	table = machinist.sections.DEFAULT_TABLE

	assert table.bars_for("verse") == 16
	assert table.bars_for("bridge") == 12
	assert table.time_signature_for("breakdown") == machinist.sections.TimeSignature(7, 8)
	assert table.time_signature_for("chorus") == machinist.sections.COMMON_TIME


def test_unknown_tag_falls_back () -> None:

	"""Unknown tags get 8 bars of 4/4."""

	table = machinist.sections.DEFAULT_TABLE

	assert table.bars_for("solo") == 8
	assert table.time_signature_for("solo") == machinist.sections.COMMON_TIME


def test_with_overrides_returns_new_table () -> None:

	"""Overriding leaves the source table untouched."""

	table = machinist.sections.DEFAULT_TABLE
	changed = table.with_overrides(bars={"Verse": 4}, time_signatures={"bridge": machinist.sections.TimeSignature(5, 4)})

	assert changed.bars_for("verse") == 4
	assert changed.time_signature_for("bridge") == machinist.sections.TimeSignature(5, 4)
	assert table.bars_for("verse") == 16
	assert table.time_signature_for("bridge") == machinist.sections.COMMON_TIME


def test_table_is_read_only () -> None:

	"""The snapshot's mappings cannot be written to."""

	with pytest.raises(TypeError):
		machinist.sections.DEFAULT_TABLE.bars["verse"] = 2  # type: ignore[index]


def test_negative_bar_override_rejected () -> None:

	"""A negative bar count is a ValueError."""

	with pytest.raises(ValueError):
		machinist.sections.DEFAULT_TABLE.with_overrides(bars={"verse": -1})


def test_summary () -> None:

	"""The summary line reports sections, bars and approximate minutes."""

	summary = machinist.sections.DEFAULT_TABLE.summary(["intro", "verse"], tempo=60)

	assert summary == "2 sections, ~24 bars, ~2 minutes"


def test_preset_returns_copy () -> None:

	"""Mutating a returned preset does not change the stored one."""

	sections = machinist.sections.preset("simple")
	sections.append("bridge")

	assert machinist.sections.preset("simple")[-1] == "outro"


def test_unknown_preset () -> None:

	"""Unknown preset names raise ValueError listing the known ones."""

	with pytest.raises(ValueError, match="standard"):
		machinist.sections.preset("polka")


def test_presets_start_with_intro_and_end_with_outro () -> None:

	"""Every preset opens with an intro and closes with an outro."""

	for name in machinist.sections.PRESETS:
		sections = machinist.sections.preset(name)
		assert sections[0] == "intro"
		assert sections[-1] == "outro"


def test_normalize_tag () -> None:

	"""Tags are trimmed and lower-cased."""

	assert machinist.sections.normalize_tag(" Pre-Chorus ") == "pre-chorus"


def test_time_signatures_without_odd_meters_follow_table () -> None:

	"""With odd meters off each occurrence uses its tag's default."""

	sections = ["intro", "verse", "breakdown", "bridge"]
	signatures = machinist.sections.section_time_signatures(sections, seed=99)

	assert signatures == [machinist.sections.DEFAULT_TABLE.time_signature_for(tag) for tag in sections]


def test_odd_meters_only_touch_verse_and_bridge () -> None:

	"""Odd meters are picked from the allowed set and only for verses and bridges."""

	sections = ["intro", "verse", "chorus", "bridge"] * 10
	signatures = machinist.sections.section_time_signatures(sections, seed=1234, odd_meters=True)

	changed = 0

	for tag, signature in zip(sections, signatures):
		if tag in ("verse", "bridge"):
			assert signature == machinist.sections.COMMON_TIME or signature in machinist.sections.ODD_METERS
			changed += signature != machinist.sections.COMMON_TIME
		else:
			assert signature == machinist.sections.COMMON_TIME

	assert 0 < changed < 20


def test_odd_meters_are_deterministic () -> None:

	"""The same seed picks the same meters."""

	sections = machinist.sections.preset("extended")

	a = machinist.sections.section_time_signatures(sections, seed=5, odd_meters=True)
	b = machinist.sections.section_time_signatures(sections, seed=5, odd_meters=True)

	assert a == b


def test_shuffle_keeps_ends () -> None:

	"""Shuffling keeps one intro first, one outro last and the middle intact."""

	sections = machinist.sections.preset("standard")

	for seed in range(20):
		shuffled = machinist.sections.shuffle_keeping_ends(sections, random.Random(seed))

		assert shuffled[0] == "intro"
		assert shuffled[-1] == "outro"
		assert shuffled.count("intro") == 1
		assert shuffled.count("outro") == 1
		assert sorted(shuffled[1:-1]) == sorted(tag for tag in sections if tag not in ("intro", "outro"))
