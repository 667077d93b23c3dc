import random

import pytest

import machinist.groove

from conftest import SequenceRandom


def test_even_beats_have_no_bias () -> None:

	"""With centred jitter an even beat lands exactly on time."""

	feel = machinist.groove.TimingFeel()

	assert feel.offset_seconds(2, 0.5, SequenceRandom([0.5])) == 0.0


def test_odd_beats_lean_late () -> None:

	"""Odd beats are delayed by the groove fraction of a beat."""

	feel = machinist.groove.TimingFeel()

	assert feel.offset_seconds(3, 0.5, SequenceRandom([0.5])) == pytest.approx(0.01)


def test_offsets_never_negative () -> None:

	"""An early pull on an even beat clamps to zero."""

	feel = machinist.groove.TimingFeel()

	assert feel.offset_beats(0, SequenceRandom([0.0])) == pytest.approx(-0.0075)
	assert feel.offset_seconds(0, 0.5, SequenceRandom([0.0])) == 0.0


def test_offset_bounds () -> None:

	"""Offsets stay within groove plus half the jitter width."""

	feel = machinist.groove.TimingFeel()
	rng = random.Random(7)

	for beat in range(200):
		offset = feel.offset_seconds(beat, 1.0, rng)
		assert 0.0 <= offset <= 0.02 + 0.0075


def test_straight_feel () -> None:

	"""The straight feel never moves a beat."""

	rng = random.Random(1)

	for beat in range(20):
		assert machinist.groove.STRAIGHT.offset_seconds(beat, 0.5, rng) == 0.0


def test_negative_amounts_rejected () -> None:

	"""Groove and jitter cannot be negative."""

	with pytest.raises(ValueError):
		machinist.groove.TimingFeel(groove=-0.1)

	with pytest.raises(ValueError):
		machinist.groove.TimingFeel(jitter=-0.1)
