"""YAML configuration for the command line.

Example ``machinist.yaml``::

	structure:
	  preset: industrial
	generation:
	  tempo: 80
	  intensity: 8
	  seed: 12345
	sections:
	  bars: {verse: 12}
	  time_signatures: {bridge: "7/8"}
	output:
	  osc_port: 9001

Every key is optional. Command-line flags override file values.
"""

import dataclasses
import logging
import os
import typing

import yaml

import machinist.composer
import machinist.hosts
import machinist.sections


logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = "machinist.yaml"


def load_config (config_path: str = DEFAULT_CONFIG_PATH) -> dict:

	"""
	Load configuration from a YAML file. A missing file means defaults.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return {}

	with open(config_path, 'r') as f:
		try:
			data = yaml.safe_load(f)
		except yaml.YAMLError as e:
			raise machinist.composer.ConfigurationError(f"Cannot parse {config_path}: {e}") from e

	if data is None:
		return {}

	if not isinstance(data, dict):
		raise machinist.composer.ConfigurationError(f"{config_path} must contain a mapping at the top level")

	return data


def parse_time_signature (value: typing.Any) -> machinist.sections.TimeSignature:

	"""Accept ``"7/8"``, ``[7, 8]`` or an existing :class:`TimeSignature`."""

	if isinstance(value, machinist.sections.TimeSignature):
		return value

	try:
		if isinstance(value, str):
			numerator, denominator = (int(part) for part in value.split("/"))
		else:
			numerator, denominator = (int(part) for part in value)

		return machinist.sections.TimeSignature(numerator, denominator)

	except (TypeError, ValueError) as e:
		raise machinist.composer.ConfigurationError(f"Invalid time signature {value!r}: {e}") from e


def _section (config: dict, name: str, path: typing.Optional[str] = None) -> dict:

	value = config.get(name) or {}

	if not isinstance(value, dict):
		raise machinist.composer.ConfigurationError(f"'{path or name}' must be a mapping")

	return value


@dataclasses.dataclass
class Settings:

	"""Everything the command line needs, after merging file and defaults."""

	sections: typing.Optional[typing.List[str]] = None
	preset: typing.Optional[str] = None
	tempo: float = 70
	intensity: int = 7
	distortion: float = 60
	length_multiplier: float = 1.0
	seed: typing.Optional[int] = None
	odd_meters: bool = False
	bars: typing.Dict[str, int] = dataclasses.field(default_factory=dict)
	time_signatures: typing.Dict[str, machinist.sections.TimeSignature] = dataclasses.field(default_factory=dict)
	midi_device: typing.Optional[str] = None
	osc_host: str = machinist.hosts.DEFAULT_OSC_HOST
	osc_port: int = machinist.hosts.DEFAULT_OSC_PORT

	@classmethod
	def from_config (cls, config: dict) -> "Settings":

		structure = _section(config, "structure")
		generation = _section(config, "generation")
		overrides = _section(config, "sections")
		output = _section(config, "output")

		settings = cls()

		sections = structure.get("sections")
		if sections is not None:
			if not isinstance(sections, list):
				raise machinist.composer.ConfigurationError("structure.sections must be a list of section names")
			settings.sections = [str(tag) for tag in sections]

		settings.preset = structure.get("preset")

		try:
			settings.tempo = float(generation.get("tempo", settings.tempo))
			settings.intensity = int(generation.get("intensity", settings.intensity))
			settings.distortion = float(generation.get("distortion", settings.distortion))
			settings.length_multiplier = float(generation.get("length_multiplier", settings.length_multiplier))

			seed = generation.get("seed")
			settings.seed = int(seed) if seed is not None else None

			settings.bars = {str(tag): int(count) for tag, count in _section(overrides, "bars", "sections.bars").items()}
			settings.osc_port = int(output.get("osc_port", settings.osc_port))

		except (TypeError, ValueError) as e:
			raise machinist.composer.ConfigurationError(f"Invalid configuration value: {e}") from e

		settings.odd_meters = bool(generation.get("odd_meters", settings.odd_meters))

		settings.time_signatures = {
			str(tag): parse_time_signature(value)
			for tag, value in _section(overrides, "time_signatures", "sections.time_signatures").items()
		}

		settings.midi_device = output.get("midi_device")
		settings.osc_host = str(output.get("osc_host", settings.osc_host))

		return settings

	def table (self) -> machinist.sections.SectionTable:

		try:
			return machinist.sections.DEFAULT_TABLE.with_overrides(bars=self.bars, time_signatures=self.time_signatures)
		except ValueError as e:
			raise machinist.composer.ConfigurationError(str(e)) from e

	def composer (self) -> machinist.composer.Composer:

		return machinist.composer.Composer(
			sections = self.sections,
			preset = self.preset,
			table = self.table(),
			tempo = self.tempo,
			intensity = self.intensity,
			distortion = self.distortion,
			length_multiplier = self.length_multiplier,
			seed = self.seed,
			odd_meters = self.odd_meters
		)
