import typing

import mido
import pytest

import machinist.sections
import machinist.song


class FakeMidiOut:

	"""MIDI output stub that keeps every message it is sent."""

	def __init__ (self) -> None:

		self.messages: typing.List[mido.Message] = []
		self.closed = False

	def send (self, message: mido.Message) -> None:

		"""Record an outgoing MIDI message."""

		self.messages.append(message)

	def close (self) -> None:

		self.closed = True

	def of_type (self, message_type: str) -> typing.List[mido.Message]:
		return [message for message in self.messages if message.type == message_type]


class FakeHost:

	"""Sound host stub recording triggers and stops."""

	def __init__ (self, fail_on: typing.Optional[str] = None) -> None:

		self.fail_on = fail_on
		self.opened = False
		self.closed = False
		self.triggers: typing.List[typing.Tuple[str, int, float, float, typing.Dict[str, typing.Any]]] = []
		self.stopped: typing.List[int] = []

	def open (self) -> None:
		self.opened = True

	def trigger_voice (
		self,
		kind: str,
		pitch: int,
		velocity: float,
		duration: float,
		params: typing.Optional[typing.Dict[str, typing.Any]] = None
	) -> int:

		if self.fail_on == kind or self.fail_on == "*":
			raise RuntimeError(f"cannot play {kind}")

		self.triggers.append((kind, pitch, velocity, duration, dict(params or {})))
		return len(self.triggers)

	def stop_voice (self, handle: int) -> None:
		self.stopped.append(handle)

	def close (self) -> None:
		self.closed = True

	def kinds (self) -> typing.List[str]:
		return [trigger[0] for trigger in self.triggers]


class StepClock:

	"""Fake monotonic clock that moves forward a fixed amount on every read."""

	def __init__ (self, step: float = 1.0) -> None:

		self.now = 0.0
		self.step = step

	def __call__ (self) -> float:

		self.now += self.step
		return self.now


class SequenceRandom:

	"""RandomSource returning a fixed list of values, repeating the last one."""

	def __init__ (self, values: typing.Sequence[float]) -> None:

		self.values = list(values)
		self.calls = 0

	def random (self) -> float:

		value = self.values[min(self.calls, len(self.values) - 1)]
		self.calls += 1
		return value


_last_output: typing.Optional[FakeMidiOut] = None


def _fake_get_output_names () -> list[str]:

	"""Return a fixed list of MIDI output names for tests."""

	return ["Dummy MIDI"]


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a fresh fake MIDI output regardless of the name."""

	global _last_output
	_last_output = FakeMidiOut()
	return _last_output


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido so opening an output port gives a FakeMidiOut."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)


@pytest.fixture
def fake_host () -> FakeHost:
	return FakeHost()


@pytest.fixture
def short_table () -> machinist.sections.SectionTable:

	"""Every section one bar long, so whole songs are a handful of beats."""

	return machinist.sections.DEFAULT_TABLE.with_overrides(bars={tag: 1 for tag in machinist.sections.SECTION_TAGS})


@pytest.fixture
def short_song (short_table: machinist.sections.SectionTable) -> machinist.song.Song:

	"""intro, verse, chorus, outro at one bar each: 16 beats."""

	return machinist.song.build_song(["intro", "verse", "chorus", "outro"], 42, tempo=120, intensity=8, table=short_table)
