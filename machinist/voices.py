"""Bookkeeping for voices currently sounding on the sound host.

The scheduler is the only writer. It adds a :class:`Voice` for every
trigger and asks :meth:`VoicePool.admit` before each beat whether that
beat's voices fit: if they would take the pool past the high-water mark,
expired voices are reclaimed first, and if they would still take it past
the hard ceiling the beat emits nothing new. Reclaimed voices are handed to
``on_reclaim`` so the host can be told to stop them.
"""

import dataclasses
import logging
import typing


logger = logging.getLogger(__name__)


DEFAULT_HIGH_WATER = 50
DEFAULT_CEILING = 80

# Voices ending this close to "now" count as finished.
RECLAIM_MARGIN = 0.1


@dataclasses.dataclass(frozen=True)
class Voice:

	"""A sound handed to the host and the time it is expected to stop."""

	handle: typing.Any
	kind: str
	stop_time: float


class VoicePool:

	"""Tracks live voices and bounds how many may exist at once."""

	def __init__ (
		self,
		high_water: int = DEFAULT_HIGH_WATER,
		ceiling: int = DEFAULT_CEILING,
		on_reclaim: typing.Optional[typing.Callable[[Voice], None]] = None
	) -> None:

		if high_water <= 0 or ceiling <= 0:
			raise ValueError("Voice limits must be positive")

		if high_water > ceiling:
			raise ValueError("High-water mark cannot exceed the ceiling")

		self.high_water = high_water
		self.ceiling = ceiling
		self.on_reclaim = on_reclaim
		self._voices: typing.List[Voice] = []

	def __len__ (self) -> int:
		return len(self._voices)

	@property
	def voices (self) -> typing.List[Voice]:
		return list(self._voices)

	def add (self, handle: typing.Any, kind: str, stop_time: float) -> Voice:

		voice = Voice(handle=handle, kind=kind, stop_time=stop_time)
		self._voices.append(voice)
		return voice

	def reclaim (self, now: float) -> typing.List[Voice]:

		"""Drop voices whose stop time is at or before ``now + 0.1``.

		Each dropped voice is passed to ``on_reclaim``. Safe to call any
		number of times; a second call with the same ``now`` finds nothing
		left to drop.
		"""

		expired = [voice for voice in self._voices if voice.stop_time <= now + RECLAIM_MARGIN]

		if expired:
			self._voices = [voice for voice in self._voices if voice.stop_time > now + RECLAIM_MARGIN]
			logger.debug(f"Reclaimed {len(expired)} voices, {len(self._voices)} still live")

			if self.on_reclaim is not None:
				for voice in expired:
					self.on_reclaim(voice)

		return expired

	def admit (self, now: float, incoming: int = 0) -> bool:

		"""Return True if ``incoming`` more voices fit under the ceiling."""

		if len(self._voices) + incoming > self.high_water:
			self.reclaim(now)

		if len(self._voices) + incoming > self.ceiling:
			logger.warning(f"Live voice ceiling reached ({len(self._voices)} live + {incoming} new > {self.ceiling}), skipping beat")
			return False

		return True

	def release_all (self) -> typing.List[Voice]:

		"""Forget every voice and return them so the caller can stop them on the host."""

		released = self._voices
		self._voices = []
		return released
