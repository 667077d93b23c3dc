"""Deterministic random sources for generation.

Two unrelated generators live here and both are needed:

- :func:`rand` is a stateless hash of its seed (``frac(sin(seed) * 10000)``).
  Table lookups such as :func:`choice` use it, always with an explicit
  seed offset.
- :class:`LcgRandom` is a stateful linear-congruential stream. Pattern
  humanization and drum/lead triggering draw from it in call order.

They are not interchangeable and their sequences are not correlated.
Where a caller only needs "a float in [0, 1)" it can accept any
:class:`RandomSource`, which ``random.Random`` also satisfies.
"""

import math
import random
import secrets
import time
import typing

T = typing.TypeVar("T")

LCG_MULTIPLIER = 9301
LCG_INCREMENT = 49297
LCG_MODULUS = 233280


@typing.runtime_checkable
class RandomSource (typing.Protocol):

	"""Anything that yields floats in [0, 1) on demand."""

	def random (self) -> float:
		...


def rand (seed: float) -> float:

	"""Return a reproducible float in [0, 1) for ``seed``.

	The same seed always gives a bit-identical result.
	"""

	x = math.sin(seed) * 10000
	return x - math.floor(x)


def choice (options: typing.Sequence[T], seed: float) -> T:

	"""Pick one element of ``options`` using the stateless hash of ``seed``.

	The index is floored and clamped, so a hash value arbitrarily close to 1
	never reads past the end.
	"""

	if not options:
		raise ValueError("Cannot choose from an empty sequence")

	index = int(math.floor(rand(seed) * len(options)))
	return options[min(index, len(options) - 1)]


class HashRandom:

	"""Stateful wrapper around :func:`rand` that walks ``seed, seed + 1, ...``."""

	def __init__ (self, seed: int) -> None:

		self.seed = int(seed)
		self._calls = 0

	def random (self) -> float:

		value = rand(self.seed + self._calls)
		self._calls += 1
		return value


class LcgRandom:

	"""Linear-congruential stream: ``state = (state * 9301 + 49297) % 233280``.

	Deterministic given the initial seed and the number of calls made.
	"""

	def __init__ (self, seed: int) -> None:

		self.state = int(seed) % LCG_MODULUS

	def random (self) -> float:

		self.state = (self.state * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
		return self.state / LCG_MODULUS


def stream_rand (seed: int) -> typing.Callable[[], float]:

	"""Return a closure that advances an :class:`LcgRandom` on each call."""

	return LcgRandom(seed).random


def weighted_choice (options: typing.Sequence[typing.Tuple[T, float]], rng: RandomSource) -> T:

	"""Pick one item from a list of ``(value, weight)`` pairs.

	Weights are relative and do not need to sum to 1.0.
	"""

	if not options:
		raise ValueError("Options list cannot be empty")

	total = sum(weight for _, weight in options)

	if total <= 0:
		raise ValueError("Total weight must be positive")

	threshold = rng.random() * total
	cumulative = 0.0

	for value, weight in options:
		cumulative += weight
		if cumulative > threshold:
			return value

	return options[-1][0]


def new_seed () -> int:

	"""Derive a fresh 32-bit seed from the wall clock and the OS entropy pool."""

	return (time.time_ns() ^ secrets.randbits(32) ^ int(random.random() * 1_000_000)) & 0x7FFFFFFF
