import pytest

import machinist.constants
import machinist.patterns
import machinist.rng
import machinist.sections

from conftest import SequenceRandom


ALL_TAGS = list(machinist.sections.SECTION_TAGS) + ["solo"]


# ---------------------------------------------------------------------------
# Bass and lead patterns
# ---------------------------------------------------------------------------

def test_patterns_are_deterministic () -> None:

	"""Identical inputs give identical note sequences."""

	for tag in ALL_TAGS:
		assert machinist.patterns.bass_pattern(tag, 7, 12345) == machinist.patterns.bass_pattern(tag, 7, 12345)
		assert machinist.patterns.lead_pattern(tag, 7, 12345) == machinist.patterns.lead_pattern(tag, 7, 12345)


def test_different_seeds_vary_the_line () -> None:

	"""Changing the seed changes the humanized pattern."""

	assert machinist.patterns.bass_pattern("chorus", 7, 1) != machinist.patterns.bass_pattern("chorus", 7, 2)


@pytest.mark.parametrize("generate", [machinist.patterns.bass_pattern, machinist.patterns.lead_pattern])
def test_range_invariants (generate) -> None:

	"""Sounding notes stay in [21, 108] at velocity [40, 127]; all durations are positive."""

	for tag in ALL_TAGS:
		for intensity in range(1, 11):
			for seed in (0, 7, 999, 12345, 2 ** 31 - 1):
				for note in generate(tag, intensity, seed):
					assert note.duration > 0
					if note.is_rest:
						assert note.pitch == 0
						assert note.velocity == 0
					else:
						assert 21 <= note.pitch <= 108
						assert 40 <= note.velocity <= 127


def test_unknown_section_uses_verse () -> None:

	"""An unknown tag gives exactly the verse pattern."""

	assert machinist.patterns.bass_pattern("solo", 7, 42) == machinist.patterns.bass_pattern("verse", 7, 42)
	assert machinist.patterns.lead_pattern("solo", 3, 42) == machinist.patterns.lead_pattern("verse", 3, 42)


def test_intro_lead_is_a_rest () -> None:

	"""The intro lead is a single rest."""

	pattern = machinist.patterns.lead_pattern("intro", 7, 5)

	assert len(pattern) == 1
	assert pattern[0].is_rest
	assert pattern[0].velocity == 0


def test_rests_keep_their_slot () -> None:

	"""Breakdown lead rests stay rests after humanization."""

	pattern = machinist.patterns.lead_pattern("breakdown", 9, 77)

	assert [note.is_rest for note in pattern] == [False, True, False, True, False]


def test_durations_scaled_within_ten_percent () -> None:

	"""Verse bass notes are all half beats, varied by at most 10%."""

	for seed in range(50):
		for note in machinist.patterns.bass_pattern("verse", 5, seed):
			assert 0.45 <= note.duration <= 0.55


def test_pattern_lengths_follow_tables () -> None:

	"""Pattern slot counts match the section tables."""

	assert len(machinist.patterns.bass_pattern("verse", 5, 1)) == 7
	assert len(machinist.patterns.bass_pattern("bridge", 5, 1)) == 4
	assert len(machinist.patterns.bass_pattern("instrumental", 5, 1)) == 9
	assert len(machinist.patterns.lead_pattern("outro", 5, 1)) == 3


# ---------------------------------------------------------------------------
# Velocity scaling and pitch variation
# ---------------------------------------------------------------------------

def test_scale_velocity () -> None:

	"""Velocities shift by (intensity - 5) * 5 and clamp to [0, 127]."""

	assert machinist.patterns.scale_velocity(70, 5) == 70
	assert machinist.patterns.scale_velocity(70, 10) == 95
	assert machinist.patterns.scale_velocity(70, 1) == 50
	assert machinist.patterns.scale_velocity(125, 10) == 127
	assert machinist.patterns.scale_velocity(10, 1) == 0


def test_scale_velocity_keeps_silence () -> None:

	"""A zero velocity stays zero at any intensity."""

	assert machinist.patterns.scale_velocity(0, 10) == 0


def test_stepwise_motion_continues_direction () -> None:

	"""After a rising step the nudge keeps rising."""

	rng = SequenceRandom([0.1, 0.9])

	assert machinist.patterns.vary_pitch(62, 60, rng) == 64


def test_stepwise_motion_falling () -> None:

	"""After a falling step the nudge keeps falling."""

	rng = SequenceRandom([0.1, 0.5])

	assert machinist.patterns.vary_pitch(57, 60, rng) == 56


def test_repeated_pitch_takes_weighted_branch () -> None:

	"""A zero interval goes straight to the weighted interval table."""

	rng = SequenceRandom([0.1])

	assert machinist.patterns.vary_pitch(60, 60, rng) == 60
	assert rng.calls == 1


def test_large_leap_skips_stepwise_branch () -> None:

	"""Intervals over three semitones go to the weighted table."""

	rng = SequenceRandom([0.1])

	machinist.patterns.vary_pitch(67, 60, rng)

	assert rng.calls == 1


def test_vary_pitch_clamps_to_keyboard () -> None:

	"""Octave leaps below 21 or above 108 are clamped."""

	low = SequenceRandom([0.999])
	assert machinist.patterns.vary_pitch(21, None, low) == 21

	high = SequenceRandom([0.985])
	assert machinist.patterns.vary_pitch(108, None, high) == 108


def test_section_seeds_do_not_collide () -> None:

	"""Voices and section occurrences get distinct seeds."""

	seeds = {
		machinist.patterns.section_seed(100, index, voice)
		for index in range(50)
		for voice in machinist.patterns.VOICE_SEED_OFFSETS
	}

	assert len(seeds) == 50 * len(machinist.patterns.VOICE_SEED_OFFSETS)


# ---------------------------------------------------------------------------
# Drums, lead triggers, pads, atmosphere, vocals
# ---------------------------------------------------------------------------

def test_default_drum_rules () -> None:

	"""Outside the special sections: kick on 4s, snare on 8s offset 4, hats on odd steps above intensity 5."""

	rng = machinist.rng.LcgRandom(1)

	assert machinist.patterns.drum_hits("intro", 0, 7, rng).kick
	assert not machinist.patterns.drum_hits("intro", 1, 7, rng).kick
	assert machinist.patterns.drum_hits("intro", 4, 7, rng).snare
	assert machinist.patterns.drum_hits("intro", 1, 6, rng).hihat
	assert not machinist.patterns.drum_hits("intro", 1, 5, rng).hihat


def test_bridge_drum_rules () -> None:

	"""Bridge drums follow the 5/7 and 3 cycles."""

	rng = machinist.rng.LcgRandom(1)
	hits = machinist.patterns.drum_hits("bridge", 10, 5, rng)

	assert hits.kick
	assert not hits.snare
	assert hits.hihat


def test_chorus_hats_follow_intensity () -> None:

	"""Chorus hats play on every step above intensity 3."""

	assert machinist.patterns.drum_hits("chorus", 5, 4, machinist.rng.LcgRandom(3)).hihat
	assert not machinist.patterns.drum_hits("chorus", 5, 3, machinist.rng.LcgRandom(3)).hihat


def test_drum_velocity_ranges () -> None:

	"""Hit strengths fall in their documented ranges."""

	rng = machinist.rng.LcgRandom(42)

	for step in range(200):
		hits = machinist.patterns.drum_hits("breakdown", step, 8, rng)
		assert 0.7 <= hits.kick_velocity <= 1.0
		assert 0.6 <= hits.snare_velocity <= 1.0
		assert 0.4 <= hits.hihat_velocity <= 0.7


def test_drum_hits_are_deterministic () -> None:

	"""The same stream gives the same groove."""

	a = [machinist.patterns.drum_hits("verse", step, 7, rng) for rng in [machinist.rng.LcgRandom(9)] for step in range(64)]
	b = [machinist.patterns.drum_hits("verse", step, 7, rng) for rng in [machinist.rng.LcgRandom(9)] for step in range(64)]

	assert a == b


def test_should_play_lead () -> None:

	"""Lead triggers per section."""

	never = SequenceRandom([0.99])

	assert machinist.patterns.should_play_lead("chorus", 0, never)
	assert not machinist.patterns.should_play_lead("chorus", 1, never)
	assert machinist.patterns.should_play_lead("verse", 16, never)
	assert machinist.patterns.should_play_lead("bridge", 3, never)
	assert machinist.patterns.should_play_lead("bridge", 5, never)
	assert not machinist.patterns.should_play_lead("intro", 0, never)
	assert not machinist.patterns.should_play_lead("breakdown", 0, never)
	assert machinist.patterns.should_play_lead("breakdown", 0, SequenceRandom([0.1]))


def test_pad_chords_cycle () -> None:

	"""Pad chords cycle through four voicings by section index."""

	assert machinist.patterns.pad_chord(0) == (48, 51, 55)
	assert machinist.patterns.pad_chord(5) == (46, 50, 53)
	assert machinist.patterns.pad_velocity(7) == 61


def test_atmosphere_note_range () -> None:

	"""Atmospheric notes lie in [48, 71] and hold 2-5 beats."""

	rng = machinist.rng.LcgRandom(11)

	for _ in range(200):
		pitch, hold = machinist.patterns.atmosphere_note(rng)
		assert 48 <= pitch <= 71
		assert 2 <= hold <= 5


def test_wants_atmosphere () -> None:

	"""Breakdowns swell every 16 beats, intros every 32."""

	never = SequenceRandom([0.99])

	assert machinist.patterns.wants_atmosphere("breakdown", 16, never)
	assert machinist.patterns.wants_atmosphere("intro", 32, never)
	assert not machinist.patterns.wants_atmosphere("intro", 16, never)
	assert machinist.patterns.wants_atmosphere("verse", 3, SequenceRandom([0.01]))


def test_should_vocalize () -> None:

	"""Vocal cues fall every 8 chorus beats, 16 verse, 12 bridge, 4 breakdown, never in the intro."""

	assert machinist.patterns.should_vocalize("chorus", 8)
	assert not machinist.patterns.should_vocalize("chorus", 4)
	assert machinist.patterns.should_vocalize("verse", 32)
	assert machinist.patterns.should_vocalize("bridge", 12)
	assert machinist.patterns.should_vocalize("breakdown", 4)
	assert not machinist.patterns.should_vocalize("intro", 0)
