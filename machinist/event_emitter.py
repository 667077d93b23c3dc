import asyncio
import inspect
import typing


Listener = typing.Callable[..., typing.Any]

# Events the scheduler and composer publish.
STATE = "state"
BEAT = "beat"
SECTION = "section"
LYRIC = "lyric"
STATUS = "status"
LOOP = "loop"

PLAYBACK_EVENTS = frozenset({STATE, BEAT, SECTION, LYRIC, STATUS, LOOP})


class PlaybackEvents:

	"""
	Named playback notifications with plain or coroutine listeners.

	Only the names in ``PLAYBACK_EVENTS`` may be subscribed to, so a typo
	fails at registration rather than silently never firing.

	- ``state(state)``: the scheduler's play state changed.
	- ``beat(section_index, beat, progress)``: a beat was processed.
	- ``section(tag, section_index)``: a new section began.
	- ``lyric(line)``: a vocal cue fired with this lyric line.
	- ``status(message)``: a user-facing message (errors, skipped starts).
	- ``loop(seed, sections)``: looping restarted with a varied song.
	"""

	def __init__ (self) -> None:

		self._listeners: typing.Dict[str, typing.List[Listener]] = {name: [] for name in PLAYBACK_EVENTS}

	def _check (self, event_name: str) -> None:

		if event_name not in PLAYBACK_EVENTS:
			known = ", ".join(sorted(PLAYBACK_EVENTS))
			raise ValueError(f"Unknown playback event {event_name!r}; expected one of {known}")

	def on (self, event_name: str, listener: Listener) -> None:

		self._check(event_name)
		self._listeners[event_name].append(listener)

	def off (self, event_name: str, listener: Listener) -> None:

		"""
		Remove a listener.

		Raises ``ValueError`` if it was never registered for that event.
		"""

		self._check(event_name)

		if listener not in self._listeners[event_name]:
			raise ValueError(f"Listener not registered for event {event_name!r}")

		self._listeners[event_name].remove(listener)

	def listener_count (self, event_name: str) -> int:

		self._check(event_name)
		return len(self._listeners[event_name])

	def emit (self, event_name: str, *args: typing.Any) -> None:

		"""
		Call plain listeners now; coroutine listeners are scheduled on the running loop.

		Outside a running loop coroutine listeners cannot be honoured and
		raise ``ValueError``.
		"""

		self._check(event_name)

		for listener in list(self._listeners[event_name]):

			if inspect.iscoroutinefunction(listener):

				try:
					loop = asyncio.get_running_loop()
				except RuntimeError:
					raise ValueError(f"Coroutine listener for {event_name!r} needs a running event loop") from None

				loop.create_task(listener(*args))

			else:
				listener(*args)

	async def emit_async (self, event_name: str, *args: typing.Any) -> None:

		"""
		Call every listener and wait for the coroutine ones to finish.
		"""

		self._check(event_name)

		pending: typing.List[typing.Awaitable[typing.Any]] = []

		for listener in list(self._listeners[event_name]):

			if inspect.iscoroutinefunction(listener):
				pending.append(listener(*args))

			else:
				listener(*args)

		if pending:
			await asyncio.gather(*pending)
