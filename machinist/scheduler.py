"""Live playback: one beat at a time, on a single asyncio task.

The scheduler is a small state machine::

	IDLE --start--> PLAYING --pause--> PAUSED --resume--> PLAYING
	  ^                |                  |
	  +------stop------+-------stop-------+

When the last section runs out the scheduler returns to ``IDLE``, or, with
looping enabled, waits a short settle delay, swaps in a varied song and
carries on from the first beat.

Each step processes exactly one quarter-note beat: it works out which
section the :class:`~machinist.timeline.TimelinePosition` points at, picks
the voices due on that beat, hands them to the sound host after a small
timing offset, then replaces the position with the next one. Between steps
the task sleeps for ``60 / tempo`` seconds; pausing or stopping cancels that
sleep, so no beat fires afterwards.

With ``realtime=False`` the task never waits and voices trigger
immediately, which makes whole songs run in a fraction of a second for
tests and dry runs (like the sequencer's render mode).
"""

import asyncio
import dataclasses
import enum
import logging
import math
import random
import time
import typing

import machinist.constants
import machinist.constants.gm_drums
import machinist.event_emitter
import machinist.groove
import machinist.hosts
import machinist.lyrics
import machinist.patterns
import machinist.rng
import machinist.sections
import machinist.song
import machinist.timeline
import machinist.voices


logger = logging.getLogger(__name__)


LOOP_SETTLE_SECONDS = 0.5

# Reclaim finished voices on every 16th beat regardless of load.
SWEEP_INTERVAL_BEATS = 16

# Drums hold off for the opening of an intro.
INTRO_DRUM_BEATS = 16

SKIP_PROBABILITY = 0.05
BREAKDOWN_SKIP_PROBABILITY = 0.1

DOUBLE_KICK_PROBABILITY = 0.05
DOUBLE_KICK_MIN_INTENSITY = 7
GHOST_SNARE_PROBABILITY = 0.1
GLITCH_PROBABILITY = 0.03
GLITCH_MIN_INTENSITY = 6

VOCAL_PITCH = 60
VOCAL_VELOCITY = 0.6
VOCAL_WORDS = 3


class PlayState (enum.Enum):

	IDLE = "idle"
	PLAYING = "playing"
	PAUSED = "paused"


@dataclasses.dataclass(frozen=True)
class VoiceTrigger:

	"""A voice due on the current beat.

	Attributes:
		delay: Offset from the beat in beats; negative pulls a little early.
	"""

	kind: str
	pitch: int
	velocity: float
	duration: float
	delay: float = 0.0
	params: typing.Mapping[str, typing.Any] = dataclasses.field(default_factory=dict)


def _strength (intensity: float, scale: float) -> float:

	"""Velocity fraction for a drum hit: ``intensity * scale / 10``, at most 1."""

	return max(0.0, min(1.0, intensity * scale / 10.0))


class LiveScheduler:

	"""
	Plays a :class:`~machinist.song.Song` through a sound host.

	Parameters:
		song: What to play.
		host: An opened :class:`~machinist.hosts.SoundHost`.
		events: Where state, beat, section, lyric, status and loop
			notifications go.
		looping: Start with continuous looping enabled.
		realtime: Wait for real beat lengths and jitter offsets. Disable for
			instant, deterministic runs.
		vary: Makes the next song when looping; defaults to
			:func:`machinist.song.vary_song` with a fresh seed.
		clock: Monotonic time source used for voice stop times.
	"""

	def __init__ (
		self,
		song: machinist.song.Song,
		host: machinist.hosts.SoundHost,
		events: typing.Optional[machinist.event_emitter.PlaybackEvents] = None,
		pool: typing.Optional[machinist.voices.VoicePool] = None,
		feel: typing.Optional[machinist.groove.TimingFeel] = None,
		looping: bool = False,
		realtime: bool = True,
		settle_delay: float = LOOP_SETTLE_SECONDS,
		vary: typing.Optional[typing.Callable[[machinist.song.Song], machinist.song.Song]] = None,
		clock: typing.Callable[[], float] = time.monotonic
	) -> None:

		self.song = song
		self.host = host
		self.events = events if events is not None else machinist.event_emitter.PlaybackEvents()
		self.pool = pool if pool is not None else machinist.voices.VoicePool()
		self.pool.on_reclaim = self._stop_reclaimed
		self.feel = feel if feel is not None else machinist.groove.TimingFeel()
		self.looping = looping
		self.realtime = realtime
		self.settle_delay = settle_delay
		self.clock = clock

		self._vary_rng = random.Random()
		self.vary = vary if vary is not None else (lambda current: machinist.song.vary_song(current, self._vary_rng))

		self._state = PlayState.IDLE
		self._position = machinist.timeline.START
		self._task: typing.Optional[asyncio.Task] = None
		self._pending: typing.Set[asyncio.TimerHandle] = set()
		self._patterns: typing.Dict[typing.Tuple[int, str], machinist.patterns.Pattern] = {}
		self._rng = random.Random(song.seed)
		self._idle = asyncio.Event()
		self._idle.set()

	@property
	def state (self) -> PlayState:
		return self._state

	@property
	def position (self) -> machinist.timeline.TimelinePosition:
		return self._position

	@property
	def pending_triggers (self) -> int:

		"""Jittered voices scheduled but not yet handed to the host."""

		return len(self._pending)

	def _set_state (self, state: PlayState) -> None:

		if state is self._state:
			return

		self._state = state

		if state is PlayState.IDLE:
			self._idle.set()
		else:
			self._idle.clear()

		self.events.emit(machinist.event_emitter.STATE, state)

	def load (self, song: machinist.song.Song) -> None:

		"""Replace the song. Only allowed while idle."""

		if self._state is not PlayState.IDLE:
			raise RuntimeError("Stop playback before loading another song")

		self.song = song
		self._patterns.clear()
		self._rng.seed(song.seed)

	async def start (self) -> bool:

		"""
		Begin playback from the top (or resume when paused).

		Returns False, staying idle and emitting a ``status`` message, when
		there is nothing to play.
		"""

		if self._state is PlayState.PLAYING:
			return True

		if self._state is PlayState.PAUSED:
			return await self.resume()

		if not self.song.sections:
			return self._refuse("Add at least one section before playing")

		if self.song.timeline.total_live_beats == 0:
			return self._refuse("Every section has zero bars; nothing to play")

		self._position = machinist.timeline.settle(self.song.timeline, machinist.timeline.START)
		self._rng.seed(self.song.seed)
		self._patterns.clear()

		self._set_state(PlayState.PLAYING)
		self._task = asyncio.create_task(self._run())

		logger.info(f"Playback started ({self.song.describe()})")

		return True

	def _refuse (self, message: str) -> bool:

		logger.warning(f"Cannot start playback: {message}")
		self.events.emit(machinist.event_emitter.STATUS, message)
		return False

	async def pause (self) -> None:

		"""Suspend playback, keeping the position. Live voices are released."""

		if self._state is not PlayState.PLAYING:
			return

		self._set_state(PlayState.PAUSED)
		await self._cancel_task()
		self._cancel_pending()
		self._release_voices()

		logger.info(f"Playback paused at section {self._position.section_index}, beat {self._position.beat}")

	async def resume (self) -> bool:

		"""Continue from the exact beat held at pause."""

		if self._state is not PlayState.PAUSED:
			return self._state is PlayState.PLAYING

		self._set_state(PlayState.PLAYING)
		self._task = asyncio.create_task(self._run())

		logger.info("Playback resumed")

		return True

	async def stop (self) -> None:

		"""Stop from any state: cancel everything pending and rewind to the top."""

		await self._cancel_task()
		self._cancel_pending()
		self._release_voices()
		self._position = machinist.timeline.START

		if self._state is not PlayState.IDLE:
			logger.info("Playback stopped")

		self._set_state(PlayState.IDLE)

	async def wait (self) -> None:

		"""Wait until the scheduler is idle again."""

		await self._idle.wait()

	async def _cancel_task (self) -> None:

		task = self._task
		self._task = None

		if task is None or task is asyncio.current_task() or task.done():
			return

		task.cancel()

		try:
			await task
		except asyncio.CancelledError:
			pass

	def _cancel_pending (self) -> None:

		for handle in self._pending:
			handle.cancel()

		self._pending.clear()

	def _stop_reclaimed (self, voice: machinist.voices.Voice) -> None:
		self.host.stop_voice(voice.handle)

	def _release_voices (self) -> None:

		for voice in self.pool.release_all():
			self.host.stop_voice(voice.handle)

	def _fail (self, error: Exception) -> None:

		"""Bring playback to a clean halt after an error."""

		task = self._task
		self._task = None

		if task is not None and task is not asyncio.current_task() and not task.done():
			task.cancel()

		self._cancel_pending()
		self._release_voices()
		self._position = machinist.timeline.START

		self.events.emit(machinist.event_emitter.STATUS, f"Playback error: {error}")
		self._set_state(PlayState.IDLE)

	async def _run (self) -> None:

		try:
			while self._state is PlayState.PLAYING:

				if machinist.timeline.is_finished(self.song.timeline, self._position):

					if not self.looping:
						logger.info("Song finished")
						self._task = None
						self._position = machinist.timeline.START
						self._set_state(PlayState.IDLE)
						return

					await asyncio.sleep(self.settle_delay if self.realtime else 0)
					self._restart()
					continue

				self.step()

				await asyncio.sleep(self.song.beat_seconds if self.realtime else 0)

		except asyncio.CancelledError:
			raise

		except Exception as e:
			logger.exception("Playback stopped by an error")
			self._fail(e)

	def _restart (self) -> None:

		song = self.vary(self.song)

		self.song = song
		self._patterns.clear()
		self._rng.seed(song.seed)
		self._position = machinist.timeline.settle(song.timeline, machinist.timeline.START)

		logger.info(f"Looping: {song.describe()}")
		self.events.emit(machinist.event_emitter.LOOP, song.seed, list(song.sections))

	def step (self) -> None:

		"""Process the beat at the current position and move to the next one."""

		timeline = self.song.timeline
		position = machinist.timeline.settle(timeline, self._position)

		if machinist.timeline.is_finished(timeline, position):
			self._position = position
			return

		span = timeline.spans[position.section_index]

		if position.beat == 0:
			logger.info(f"Section {span.index + 1}/{len(timeline)}: {span.tag} ({span.bars} bars of {span.time_signature})")
			self.events.emit(machinist.event_emitter.SECTION, span.tag, span.index)

		self._play_beat(span, position.beat)

		self._position = machinist.timeline.advance(timeline, position)
		self.events.emit(machinist.event_emitter.BEAT, span.index, position.beat, timeline.progress(self._position))

	def _play_beat (self, span: machinist.timeline.SectionSpan, beat: int) -> None:

		now = self.clock()

		if beat % SWEEP_INTERVAL_BEATS == 0:
			self.pool.reclaim(now)

		rng = machinist.rng.LcgRandom(machinist.patterns.section_seed(self.song.seed, span.index, machinist.constants.KICK) + beat)

		skip = BREAKDOWN_SKIP_PROBABILITY if span.tag == machinist.sections.BREAKDOWN else SKIP_PROBABILITY

		triggers: typing.List[VoiceTrigger] = []

		if self._rng.random() >= skip:
			triggers.extend(self.beat_voices(span, beat, rng))

		cue = self._vocal_cue(span, beat)

		if cue is not None:
			triggers.append(cue[1])

		# Voices still waiting on a timer will land in the pool too.
		if not self.pool.admit(now, len(triggers) + len(self._pending)):
			return

		if cue is not None:
			self.events.emit(machinist.event_emitter.LYRIC, cue[0])

		offset = self.feel.offset_seconds(beat, self.song.beat_seconds, self._rng)

		for trigger in triggers:
			self._dispatch(trigger, offset)

	def _pattern (self, span: machinist.timeline.SectionSpan, voice: str) -> machinist.patterns.Pattern:

		key = (span.index, voice)

		if key not in self._patterns:
			generate = machinist.patterns.bass_pattern if voice == machinist.constants.BASS else machinist.patterns.lead_pattern
			seed = machinist.patterns.section_seed(self.song.seed, span.index, voice)
			self._patterns[key] = generate(span.tag, self.song.intensity, seed)

		return self._patterns[key]

	def beat_voices (
		self,
		span: machinist.timeline.SectionSpan,
		beat: int,
		rng: machinist.rng.RandomSource
	) -> typing.List[VoiceTrigger]:

		"""Work out the instrument voices due on one beat of a section."""

		tag = span.tag
		intensity = self.song.intensity
		beat_seconds = self.song.beat_seconds

		triggers: typing.List[VoiceTrigger] = []

		hits = machinist.patterns.drum_hits(tag, beat, intensity, rng)

		if tag != machinist.sections.INTRO or beat > INTRO_DRUM_BEATS:

			if hits.kick:
				triggers.append(VoiceTrigger(
					machinist.constants.KICK, machinist.constants.gm_drums.KICK_1,
					_strength(intensity, hits.kick_velocity), machinist.constants.KICK_SECONDS
				))

				if rng.random() < DOUBLE_KICK_PROBABILITY and intensity > DOUBLE_KICK_MIN_INTENSITY:
					triggers.append(VoiceTrigger(
						machinist.constants.KICK, machinist.constants.gm_drums.KICK_1,
						_strength(intensity, 0.7), machinist.constants.KICK_SECONDS, delay=0.125
					))

			if hits.snare:
				triggers.append(VoiceTrigger(
					machinist.constants.SNARE, machinist.constants.gm_drums.SNARE_1,
					_strength(intensity, hits.snare_velocity), machinist.constants.SNARE_SECONDS
				))

				if rng.random() < GHOST_SNARE_PROBABILITY:
					triggers.append(VoiceTrigger(
						machinist.constants.SNARE, machinist.constants.gm_drums.SNARE_1,
						_strength(intensity, 0.3), machinist.constants.SNARE_SECONDS, delay=-0.0625
					))

			if hits.hihat:
				triggers.append(VoiceTrigger(
					machinist.constants.HIHAT, machinist.constants.gm_drums.HI_HAT_CLOSED,
					_strength(intensity, hits.hihat_velocity), machinist.constants.HIHAT_SECONDS
				))

		bass = self._pattern(span, machinist.constants.BASS)
		note = bass[beat % len(bass)]

		if not note.is_rest:
			triggers.append(VoiceTrigger(machinist.constants.BASS, note.pitch, note.velocity / 127, note.duration * beat_seconds))

		if machinist.patterns.should_play_lead(tag, beat, rng):
			lead = self._pattern(span, machinist.constants.LEAD)
			note = lead[beat % len(lead)]

			if not note.is_rest:
				triggers.append(VoiceTrigger(machinist.constants.LEAD, note.pitch, note.velocity / 127, note.duration * beat_seconds))

		if beat == 0 and tag in machinist.patterns.PAD_SECTIONS:
			hold_beats = min(machinist.patterns.PAD_HOLD_BARS * span.beats_per_bar, span.beats)
			velocity = machinist.patterns.pad_velocity(intensity) / 127

			for pitch in machinist.patterns.pad_chord(span.index):
				triggers.append(VoiceTrigger(machinist.constants.PAD, pitch, velocity, hold_beats * beat_seconds))

		if machinist.patterns.wants_atmosphere(tag, beat, rng):
			pitch, _ = machinist.patterns.atmosphere_note(rng)
			triggers.append(VoiceTrigger(
				machinist.constants.ATMOSPHERE, pitch,
				machinist.patterns.atmosphere_velocity(intensity) / 127, machinist.constants.ATMOSPHERE_SECONDS
			))

		if rng.random() < GLITCH_PROBABILITY and intensity > GLITCH_MIN_INTENSITY:
			pitch = 72 + int(math.floor(rng.random() * 24))
			triggers.append(VoiceTrigger(machinist.constants.GLITCH, pitch, _strength(intensity, 0.5), machinist.constants.GLITCH_SECONDS))

		return triggers

	def _vocal_cue (
		self,
		span: machinist.timeline.SectionSpan,
		beat: int
	) -> typing.Optional[typing.Tuple[str, VoiceTrigger]]:

		"""The lyric line due on this beat and the vocal that sings its opening words."""

		if not machinist.patterns.should_vocalize(span.tag, beat):
			return None

		line = self.song.lyrics.current_line(span.index, beat)

		if line is None or line == machinist.lyrics.INSTRUMENTAL_LINE:
			return None

		phrase = " ".join(line.split()[:VOCAL_WORDS])

		return line, VoiceTrigger(
			machinist.constants.VOCAL, VOCAL_PITCH, VOCAL_VELOCITY,
			2 * self.song.beat_seconds, params={"text": phrase}
		)

	def _dispatch (self, trigger: VoiceTrigger, offset: float) -> None:

		delay = max(0.0, offset + trigger.delay * self.song.beat_seconds)

		if not self.realtime or delay == 0:
			self._fire(trigger)
			return

		loop = asyncio.get_running_loop()

		def fire () -> None:
			self._pending.discard(handle)
			try:
				self._fire(trigger)
			except Exception as e:
				logger.exception("Voice trigger failed")
				self._fail(e)

		handle = loop.call_later(delay, fire)
		self._pending.add(handle)

	def _fire (self, trigger: VoiceTrigger) -> None:

		params: typing.Dict[str, typing.Any] = {"distortion": self.song.distortion}
		params.update(trigger.params)

		handle = self.host.trigger_voice(trigger.kind, trigger.pitch, trigger.velocity, trigger.duration, params)
		self.pool.add(handle, trigger.kind, self.clock() + trigger.duration)
