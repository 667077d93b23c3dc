import pytest

import machinist.composer
import machinist.config
import machinist.sections


CONFIG = """
structure:
  preset: industrial
generation:
  tempo: 80
  intensity: 8
  seed: 12345
  odd_meters: true
sections:
  bars: {Verse: 12}
  time_signatures: {bridge: "7/8", chorus: [3, 4]}
output:
  midi_device: "Synth Port"
  osc_port: 9100
"""


def _write (tmp_path, text: str) -> str:

	path = tmp_path / "machinist.yaml"
	path.write_text(text)
	return str(path)


def test_missing_file_means_defaults (tmp_path) -> None:

	"""No config file: an empty mapping and default settings."""

	config = machinist.config.load_config(str(tmp_path / "absent.yaml"))
	settings = machinist.config.Settings.from_config(config)

	assert config == {}
	assert settings.tempo == 70
	assert settings.preset is None


def test_empty_file_means_defaults (tmp_path) -> None:

	"""An empty YAML document is the same as no file."""

	assert machinist.config.load_config(_write(tmp_path, "")) == {}


def test_full_config (tmp_path) -> None:

	"""Every section of the file reaches the settings."""

	settings = machinist.config.Settings.from_config(machinist.config.load_config(_write(tmp_path, CONFIG)))

	assert settings.preset == "industrial"
	assert (settings.tempo, settings.intensity, settings.seed) == (80.0, 8, 12345)
	assert settings.odd_meters is True
	assert settings.midi_device == "Synth Port"
	assert settings.osc_port == 9100

	table = settings.table()

	assert table.bars_for("verse") == 12
	assert table.time_signature_for("bridge") == machinist.sections.TimeSignature(7, 8)
	assert table.time_signature_for("chorus") == machinist.sections.TimeSignature(3, 4)


def test_settings_build_composer (tmp_path) -> None:

	"""The composer gets the preset structure, parameters and table."""

	settings = machinist.config.Settings.from_config(machinist.config.load_config(_write(tmp_path, CONFIG)))
	composer = settings.composer()

	assert composer.sections == machinist.sections.preset("industrial")
	assert composer.parameters.seed == 12345
	assert composer.table.bars_for("verse") == 12


def test_explicit_sections (tmp_path) -> None:

	"""A section list in the file replaces the preset."""

	config = machinist.config.load_config(_write(tmp_path, "structure:\n  sections: [intro, verse, outro]\n"))
	composer = machinist.config.Settings.from_config(config).composer()

	assert composer.sections == ["intro", "verse", "outro"]


@pytest.mark.parametrize("text", [
	"generation: [1, 2",
	"- just\n- a list\n",
	"generation:\n  tempo: fast\n",
	"structure:\n  sections: verse\n",
	"output: 5\n",
	"sections:\n  time_signatures: {verse: \"7/6\"}\n",
	"sections:\n  time_signatures: [7, 8]\n",
	"sections:\n  bars: 5\n",
	"sections: [verse]\n",
])
def test_invalid_files (tmp_path, text: str) -> None:

	"""Broken YAML and unusable values are configuration errors."""

	with pytest.raises(machinist.composer.ConfigurationError):
		machinist.config.Settings.from_config(machinist.config.load_config(_write(tmp_path, text)))


def test_section_overrides_must_be_mappings (tmp_path) -> None:

	"""A list where a tag-to-meter mapping belongs names the offending key."""

	config = machinist.config.load_config(_write(tmp_path, "sections:\n  time_signatures: [7, 8]\n"))

	with pytest.raises(machinist.composer.ConfigurationError, match="sections.time_signatures"):
		machinist.config.Settings.from_config(config)


def test_negative_bars (tmp_path) -> None:

	"""Negative bar counts are caught when the table is built."""

	settings = machinist.config.Settings.from_config(machinist.config.load_config(_write(tmp_path, "sections:\n  bars: {verse: -2}\n")))

	with pytest.raises(machinist.composer.ConfigurationError):
		settings.table()


@pytest.mark.parametrize("value, expected", [
	("7/8", machinist.sections.TimeSignature(7, 8)),
	([5, 4], machinist.sections.TimeSignature(5, 4)),
	(machinist.sections.COMMON_TIME, machinist.sections.COMMON_TIME),
])
def test_parse_time_signature (value: object, expected: machinist.sections.TimeSignature) -> None:

	"""Strings, pairs and existing signatures are all accepted."""

	assert machinist.config.parse_time_signature(value) == expected


def test_parse_time_signature_rejects_garbage () -> None:

	"""Anything else is a configuration error."""

	for value in ("seven", "7/8/4", 7, [0, 4]):
		with pytest.raises(machinist.composer.ConfigurationError):
			machinist.config.parse_time_signature(value)
