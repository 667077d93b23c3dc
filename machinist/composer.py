import asyncio
import dataclasses
import logging
import os
import pathlib
import random
import signal
import tempfile
import typing

import machinist.event_emitter
import machinist.hosts
import machinist.midi_file
import machinist.rng
import machinist.scheduler
import machinist.sections
import machinist.song


logger = logging.getLogger(__name__)


DEFAULT_PRESET = "standard"


class ConfigurationError (ValueError):

	"""Generation, playback or export was asked for with unusable settings."""


@dataclasses.dataclass
class GenerationParameters:

	"""
	The knobs a generation pass reads.

	Parameters:
		tempo: Quarter-note beats per minute.
		intensity: 1-10. Shifts velocities and unlocks busier drums.
		distortion: 0-100. Passed to the sound host untouched.
		length_multiplier: Scales every section's base bar count.
		seed: Fixed seed, or None for a fresh one on every generate.
		odd_meters: Let verses and bridges switch to 5/4, 7/8, 9/8 or 6/8.
	"""

	tempo: float = 70
	intensity: int = 7
	distortion: float = 60
	length_multiplier: float = 1.0
	seed: typing.Optional[int] = None
	odd_meters: bool = False

	def validate (self) -> None:

		if not machinist.song.MIN_TEMPO <= self.tempo <= machinist.song.MAX_TEMPO:
			raise ConfigurationError(f"Tempo must be between {machinist.song.MIN_TEMPO} and {machinist.song.MAX_TEMPO} BPM, got {self.tempo}")

		if not machinist.song.MIN_INTENSITY <= self.intensity <= machinist.song.MAX_INTENSITY:
			raise ConfigurationError(f"Intensity must be between 1 and 10, got {self.intensity}")

		if not 0 <= self.distortion <= 100:
			raise ConfigurationError(f"Distortion must be between 0 and 100, got {self.distortion}")

		if self.length_multiplier <= 0:
			raise ConfigurationError(f"Length multiplier must be positive, got {self.length_multiplier}")


async def run_until_stopped (scheduler: machinist.scheduler.LiveScheduler) -> None:

	"""
	Play until the song ends (when not looping) or a stop signal arrives.
	"""

	if not await scheduler.start():
		return

	logger.info("Playing. Press Ctrl+C to stop.")

	stop_event = asyncio.Event()
	loop = asyncio.get_running_loop()

	def _request_stop () -> None:
		stop_event.set()

	for sig in (signal.SIGINT, signal.SIGTERM):
		loop.add_signal_handler(sig, _request_stop)

	waiters = [asyncio.create_task(stop_event.wait()), asyncio.create_task(scheduler.wait())]

	try:
		await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
	finally:
		for waiter in waiters:
			waiter.cancel()

		for sig in (signal.SIGINT, signal.SIGTERM):
			loop.remove_signal_handler(sig)

		await scheduler.stop()


def write_atomic (path: typing.Union[str, pathlib.Path], data: bytes) -> pathlib.Path:

	"""Write ``data`` beside ``path`` first, then move it into place in one step."""

	target = pathlib.Path(path)
	directory = target.parent if str(target.parent) else pathlib.Path(".")

	fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=directory)

	try:
		with os.fdopen(fd, "wb") as handle:
			handle.write(data)
		os.replace(temp_name, target)
	except BaseException:
		if os.path.exists(temp_name):
			os.unlink(temp_name)
		raise

	return target


class Composer:

	"""
	Generates songs, exports them, and plays them live.

	This is the object the command line drives. It holds the structure (the
	editor's section list and :class:`~machinist.sections.SectionTable`),
	the :class:`GenerationParameters`, and the most recent
	:class:`~machinist.song.Song`.

	Example::

		composer = machinist.composer.Composer(preset="simple", tempo=90, seed=12345)
		composer.export_midi("song.mid", variant="rich")
		composer.export_lyrics("song.txt")
	"""

	def __init__ (
		self,
		sections: typing.Optional[typing.Sequence[str]] = None,
		preset: typing.Optional[str] = None,
		table: machinist.sections.SectionTable = machinist.sections.DEFAULT_TABLE,
		tempo: float = 70,
		intensity: int = 7,
		distortion: float = 60,
		length_multiplier: float = 1.0,
		seed: typing.Optional[int] = None,
		odd_meters: bool = False
	) -> None:

		self.parameters = GenerationParameters(
			tempo = tempo,
			intensity = intensity,
			distortion = distortion,
			length_multiplier = length_multiplier,
			seed = seed,
			odd_meters = odd_meters
		)

		self.table = table
		self.events = machinist.event_emitter.PlaybackEvents()
		self.song: typing.Optional[machinist.song.Song] = None
		self.scheduler: typing.Optional[machinist.scheduler.LiveScheduler] = None

		self._rng = random.Random()
		self._sections: typing.List[str] = []

		if sections is not None:
			self.set_sections(sections)
		else:
			self.load_preset(preset or DEFAULT_PRESET)

	@property
	def sections (self) -> typing.List[str]:
		return list(self._sections)

	def set_sections (self, sections: typing.Sequence[str]) -> None:

		self._sections = [machinist.sections.normalize_tag(tag) for tag in sections]
		self.song = None

	def load_preset (self, name: str) -> None:

		try:
			self._sections = machinist.sections.preset(name)
		except ValueError as e:
			raise ConfigurationError(str(e)) from e

		self.song = None
		logger.info(f"Loaded structure preset '{name}': {self.table.summary(self._sections, self.parameters.tempo)}")

	def on_event (self, event_name: str, callback: typing.Callable[..., typing.Any]) -> None:

		"""Subscribe to a playback event (see :class:`~machinist.event_emitter.PlaybackEvents`)."""

		self.events.on(event_name, callback)

	def generate (self, seed: typing.Optional[int] = None) -> machinist.song.Song:

		"""
		Run a generation pass.

		The seed is, in order of preference: the ``seed`` argument, the
		configured fixed seed, or a fresh one.
		"""

		if not self._sections:
			raise ConfigurationError("The song has no sections; add at least one before generating")

		self.parameters.validate()

		if seed is None:
			seed = self.parameters.seed if self.parameters.seed is not None else machinist.rng.new_seed()

		self.song = machinist.song.build_song(
			self._sections,
			seed,
			tempo = self.parameters.tempo,
			intensity = self.parameters.intensity,
			distortion = self.parameters.distortion,
			length_multiplier = self.parameters.length_multiplier,
			table = self.table,
			odd_meters = self.parameters.odd_meters
		)

		return self.song

	def _current_song (self) -> machinist.song.Song:
		return self.song if self.song is not None else self.generate()

	def score_bytes (self, variant: str = machinist.midi_file.SIMPLE) -> bytes:

		"""Encode the current song (generating one first if needed)."""

		if variant not in machinist.midi_file.VARIANTS:
			raise ConfigurationError(f"Unknown score variant '{variant}'")

		song = self._current_song()

		return machinist.midi_file.encode_score(
			song.sections,
			song.tempo,
			song.intensity,
			song.length_multiplier,
			song.seed,
			variant = variant,
			timeline = song.timeline
		)

	def export_midi (self, path: typing.Union[str, pathlib.Path], variant: str = machinist.midi_file.SIMPLE) -> pathlib.Path:

		"""Write the score to ``path``. The file only appears once it is complete."""

		data = self.score_bytes(variant)
		target = write_atomic(path, data)

		logger.info(f"Exported {variant} MIDI score ({len(data)} bytes) to {target}")

		return target

	def lyrics_text (self) -> str:
		return self._current_song().lyrics.export_text()

	def export_lyrics (self, path: typing.Union[str, pathlib.Path]) -> pathlib.Path:

		target = write_atomic(path, self.lyrics_text().encode("utf-8"))

		logger.info(f"Exported lyrics to {target}")

		return target

	def _vary (self, song: machinist.song.Song) -> machinist.song.Song:

		varied = machinist.song.vary_song(song, self._rng)

		self.song = varied
		self._sections = list(varied.sections)
		self.parameters.tempo = varied.tempo
		self.parameters.intensity = varied.intensity

		return varied

	def make_scheduler (
		self,
		host: machinist.hosts.SoundHost,
		looping: bool = False,
		realtime: bool = True
	) -> machinist.scheduler.LiveScheduler:

		self.scheduler = machinist.scheduler.LiveScheduler(
			self._current_song(),
			host,
			events = self.events,
			looping = looping,
			realtime = realtime,
			vary = self._vary
		)

		return self.scheduler

	async def play_async (self, host: machinist.hosts.SoundHost, looping: bool = False, realtime: bool = True) -> None:

		"""Open ``host``, play until finished or interrupted, then close it."""

		self._current_song()

		host.open()

		try:
			await run_until_stopped(self.make_scheduler(host, looping=looping, realtime=realtime))
		finally:
			host.close()

	def play (self, host: machinist.hosts.SoundHost, looping: bool = False) -> None:

		"""Blocking live playback; Ctrl+C stops cleanly."""

		try:
			asyncio.run(self.play_async(host, looping=looping))
		except KeyboardInterrupt:
			pass
