"""Sound hosts: where the live scheduler sends its voices.

The scheduler never synthesizes audio. It calls
``trigger_voice(kind, pitch, velocity, duration, params)`` on a host, keeps
the returned handle with an expected stop time, and may later call
``stop_voice(handle)``. Two hosts are provided:

- :class:`MidiHost` plays voices on a MIDI output port through ``mido``.
  Each voice kind has its own channel; drum kinds share the GM drum
  channel and are told apart by note number.
- :class:`OscHost` sends ``/voice/<kind>`` and ``/voice/stop`` messages over
  UDP with ``python-osc`` for an external synthesizer.

If a host cannot be opened it raises :class:`HostUnavailableError`, which
callers treat separately from bad configuration.
"""

import asyncio
import itertools
import logging
import typing

import mido
import pythonosc.udp_client

import machinist.constants
import machinist.constants.gm_drums


logger = logging.getLogger(__name__)


Handle = int

# CC 77 ("sound controller 8"); synthesizers commonly map it to drive.
DISTORTION_CC = 77

DEFAULT_OSC_HOST = "127.0.0.1"
DEFAULT_OSC_PORT = 9001


class HostUnavailableError (RuntimeError):

	"""The sound host could not be initialised."""


class SoundHost (typing.Protocol):

	"""What the live scheduler needs from a sound host."""

	def open (self) -> None:
		...

	def trigger_voice (
		self,
		kind: str,
		pitch: int,
		velocity: float,
		duration: float,
		params: typing.Optional[typing.Dict[str, typing.Any]] = None
	) -> Handle:
		...

	def stop_voice (self, handle: Handle) -> None:
		...

	def close (self) -> None:
		...


# (channel, fixed note or None to use the requested pitch) per voice kind.
MIDI_VOICE_MAP: typing.Dict[str, typing.Tuple[int, typing.Optional[int]]] = {
	machinist.constants.KICK: (machinist.constants.DRUM_CHANNEL, machinist.constants.gm_drums.KICK_1),
	machinist.constants.SNARE: (machinist.constants.DRUM_CHANNEL, machinist.constants.gm_drums.SNARE_1),
	machinist.constants.HIHAT: (machinist.constants.DRUM_CHANNEL, None),
	machinist.constants.GLITCH: (machinist.constants.DRUM_CHANNEL, machinist.constants.gm_drums.CRASH_1),
	machinist.constants.BASS: (machinist.constants.BASS_CHANNEL, None),
	machinist.constants.LEAD: (machinist.constants.LEAD_CHANNEL, None),
	machinist.constants.PAD: (machinist.constants.PAD_CHANNEL, None),
	machinist.constants.ATMOSPHERE: (machinist.constants.EFFECTS_CHANNEL, None),
	machinist.constants.VOCAL: (machinist.constants.VOCAL_CHANNEL, None),
}

MIDI_PROGRAMS: typing.Dict[int, int] = {
	machinist.constants.BASS_CHANNEL: machinist.constants.PROGRAM_SYNTH_BASS_1,
	machinist.constants.LEAD_CHANNEL: machinist.constants.PROGRAM_SYNTH_LEAD,
	machinist.constants.PAD_CHANNEL: machinist.constants.PROGRAM_PAD_WARM,
	machinist.constants.EFFECTS_CHANNEL: machinist.constants.PROGRAM_FX_ATMOSPHERE,
	machinist.constants.VOCAL_CHANNEL: machinist.constants.PROGRAM_VOICE_OOHS,
}


def velocity_to_midi (velocity: float) -> int:

	"""Map a velocity fraction in [0, 1] to a MIDI velocity in [1, 127]."""

	return max(1, min(127, int(round(velocity * 127))))


def open_output_port (
	device_name: typing.Optional[str] = None,
	prompt: typing.Callable[[str], str] = input
) -> typing.Tuple[str, typing.Any]:

	"""Find and open a MIDI output port.

	A named port must exist. Without a name, a lone port is used as is and
	several are listed so the user can pick one by number.

	Returns:
		The port name and the open ``mido`` output.

	Raises:
		HostUnavailableError: When ports cannot be listed, none exist, the
			named one is missing, input ends before a choice or the port
			refuses to open.
	"""

	try:
		names = mido.get_output_names()
	except Exception as e:
		raise HostUnavailableError(f"Could not list MIDI outputs: {e}") from e

	if not names:
		raise HostUnavailableError("No MIDI output ports found")

	if device_name is not None:
		if device_name not in names:
			raise HostUnavailableError(f"MIDI output '{device_name}' not found. Available: {', '.join(names)}")
		name = device_name

	elif len(names) == 1:
		name = names[0]
		logger.info(f"Using the only MIDI output: '{name}'")

	else:
		name = _choose_port(names, prompt)

	try:
		port = mido.open_output(name)
	except Exception as e:
		raise HostUnavailableError(f"Could not open MIDI output '{name}': {e}") from e

	return name, port


def _choose_port (names: typing.List[str], prompt: typing.Callable[[str], str]) -> str:

	print("Available MIDI outputs:")

	for number, name in enumerate(names, start=1):
		print(f"  {number}. {name}")

	while True:

		try:
			answer = prompt(f"Select output (1-{len(names)}): ")
		except EOFError as e:
			raise HostUnavailableError("No MIDI output selected") from e

		if answer.strip().isdigit() and 1 <= int(answer) <= len(names):
			return names[int(answer) - 1]

		print(f"Enter a number between 1 and {len(names)}.")


class MidiHost:

	"""Plays voices as notes on a MIDI output port.

	Note-offs are scheduled on the running event loop when there is one;
	outside a loop they wait until :meth:`stop_voice` or :meth:`close`.
	"""

	def __init__ (self, device_name: typing.Optional[str] = None, port: typing.Optional[typing.Any] = None) -> None:

		self.device_name = device_name
		self._port = port
		self._handles = itertools.count(1)
		self._sounding: typing.Dict[Handle, typing.Tuple[int, int]] = {}
		self._timers: typing.Dict[Handle, asyncio.TimerHandle] = {}
		self._distortion: typing.Optional[int] = None

	@property
	def is_open (self) -> bool:
		return self._port is not None

	def open (self) -> None:

		if self._port is None:
			self.device_name, self._port = open_output_port(self.device_name)

		for channel, program in MIDI_PROGRAMS.items():
			self._send(mido.Message("program_change", channel=channel, program=program))

		logger.info(f"MIDI host ready on '{self.device_name}'")

	def _send (self, message: mido.Message) -> None:

		if self._port is None:
			raise HostUnavailableError("MIDI host is not open")

		try:
			self._port.send(message)
		except Exception as e:
			logger.warning(f"MIDI send error: {e}")

	def _apply_distortion (self, params: typing.Optional[typing.Dict[str, typing.Any]]) -> None:

		if not params or "distortion" not in params:
			return

		value = max(0, min(127, int(round(float(params["distortion"]) * 127 / 100))))

		if value == self._distortion:
			return

		self._distortion = value

		for channel in MIDI_PROGRAMS:
			self._send(mido.Message("control_change", channel=channel, control=DISTORTION_CC, value=value))

	def trigger_voice (
		self,
		kind: str,
		pitch: int,
		velocity: float,
		duration: float,
		params: typing.Optional[typing.Dict[str, typing.Any]] = None
	) -> Handle:

		if kind not in MIDI_VOICE_MAP:
			raise ValueError(f"Unknown voice kind '{kind}'")

		self._apply_distortion(params)

		channel, fixed_note = MIDI_VOICE_MAP[kind]
		note = fixed_note if fixed_note is not None else max(0, min(127, int(pitch)))

		handle = next(self._handles)
		self._sounding[handle] = (channel, note)
		self._send(mido.Message("note_on", channel=channel, note=note, velocity=velocity_to_midi(velocity)))

		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			loop = None

		if loop is not None:
			self._timers[handle] = loop.call_later(max(0.0, duration), self.stop_voice, handle)

		return handle

	def stop_voice (self, handle: Handle) -> None:

		"""Send the note-off for a voice. Stopping an already stopped voice does nothing."""

		timer = self._timers.pop(handle, None)

		if timer is not None:
			timer.cancel()

		sounding = self._sounding.pop(handle, None)

		if sounding is None:
			return

		channel, note = sounding
		self._send(mido.Message("note_off", channel=channel, note=note, velocity=0))

	@property
	def sounding (self) -> int:
		return len(self._sounding)

	def close (self) -> None:

		if self._port is None:
			return

		for handle in list(self._sounding):
			self.stop_voice(handle)

		self._port.close()
		self._port = None
		logger.info("MIDI host closed")


class OscHost:

	"""Sends voices to an OSC synthesizer.

	Messages:
		``/voice/<kind> handle pitch velocity duration distortion [text]``
		``/voice/stop handle``
	"""

	def __init__ (self, host: str = DEFAULT_OSC_HOST, port: int = DEFAULT_OSC_PORT) -> None:

		self.host = host
		self.port = port
		self._client: typing.Optional[pythonosc.udp_client.SimpleUDPClient] = None
		self._handles = itertools.count(1)

	def open (self) -> None:

		try:
			self._client = pythonosc.udp_client.SimpleUDPClient(self.host, self.port)
		except OSError as e:
			raise HostUnavailableError(f"Cannot reach OSC host {self.host}:{self.port}: {e}") from e

		logger.info(f"OSC host sending to {self.host}:{self.port}")

	def send (self, address: str, *args: typing.Any) -> None:

		if self._client is None:
			raise HostUnavailableError("OSC host is not open")

		try:
			self._client.send_message(address, list(args))
		except Exception as e:
			logger.warning(f"OSC send error: {e}")

	def trigger_voice (
		self,
		kind: str,
		pitch: int,
		velocity: float,
		duration: float,
		params: typing.Optional[typing.Dict[str, typing.Any]] = None
	) -> Handle:

		params = params or {}
		handle = next(self._handles)

		args: typing.List[typing.Any] = [handle, int(pitch), float(velocity), float(duration), float(params.get("distortion", 0))]

		if "text" in params:
			args.append(str(params["text"]))

		self.send(f"/voice/{kind}", *args)

		return handle

	def stop_voice (self, handle: Handle) -> None:
		self.send("/voice/stop", handle)

	def close (self) -> None:

		if self._client is not None:
			self._client = None
			logger.info("OSC host closed")
