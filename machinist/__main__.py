import argparse
import logging
import sys
import typing

import machinist.composer
import machinist.config
import machinist.hosts
import machinist.midi_file
import machinist.sections


logger = logging.getLogger(__name__)


def build_parser () -> argparse.ArgumentParser:

	parser = argparse.ArgumentParser(prog="machinist", description="Seeded industrial song generator")

	common = argparse.ArgumentParser(add_help=False)
	common.add_argument("--config", default=machinist.config.DEFAULT_CONFIG_PATH, help="YAML config file (default: machinist.yaml)")
	common.add_argument("--preset", help="Structure preset: " + ", ".join(sorted(machinist.sections.PRESETS)))
	common.add_argument("--sections", help="Comma-separated section list, e.g. intro,verse,chorus,outro")
	common.add_argument("--tempo", type=float, help="Beats per minute")
	common.add_argument("--intensity", type=int, help="1-10")
	common.add_argument("--distortion", type=float, help="0-100")
	common.add_argument("--length", type=float, dest="length_multiplier", help="Section length multiplier")
	common.add_argument("--seed", type=int, help="Fixed seed (default: a fresh one)")
	common.add_argument("--odd-meters", action="store_true", default=None, help="Allow odd meters in verses and bridges")
	common.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

	commands = parser.add_subparsers(dest="command", required=True)

	export = commands.add_parser("export", parents=[common], help="Write a MIDI score and/or lyrics")
	export.add_argument("--midi", help="MIDI file to write")
	export.add_argument("--lyrics", help="Lyrics text file to write")
	export.add_argument("--variant", choices=machinist.midi_file.VARIANTS, default=machinist.midi_file.SIMPLE, help="Score layout (default: simple)")

	play = commands.add_parser("play", parents=[common], help="Play live through MIDI or OSC")
	play.add_argument("--loop", action="store_true", help="Keep playing new variations")
	play.add_argument("--host", choices=("midi", "osc"), default="midi", help="Sound host (default: midi)")
	play.add_argument("--device", help="MIDI output port name")

	commands.add_parser("presets", help="List structure presets")

	return parser


def settings_from_args (args: argparse.Namespace) -> machinist.config.Settings:

	"""Load the config file, then let explicit flags override it."""

	settings = machinist.config.Settings.from_config(machinist.config.load_config(args.config))

	if args.preset is not None:
		settings.preset = args.preset
		settings.sections = None

	if args.sections is not None:
		settings.sections = [tag for tag in args.sections.split(",") if tag.strip()]

	for name in ("tempo", "intensity", "distortion", "length_multiplier", "seed", "odd_meters"):
		value = getattr(args, name)
		if value is not None:
			setattr(settings, name, value)

	if getattr(args, "device", None) is not None:
		settings.midi_device = args.device

	return settings


def _list_presets () -> None:

	table = machinist.sections.DEFAULT_TABLE

	for name in sorted(machinist.sections.PRESETS):
		sections = machinist.sections.PRESETS[name]
		print(f"{name:<12} {table.summary(sections)}")
		print(f"{'':<12} {', '.join(sections)}")


def _export (composer: machinist.composer.Composer, args: argparse.Namespace) -> None:

	if not args.midi and not args.lyrics:
		raise machinist.composer.ConfigurationError("Nothing to export: pass --midi and/or --lyrics")

	song = composer.generate()
	print(f"Seed {song.seed}: {song.describe()}")

	if args.midi:
		composer.export_midi(args.midi, variant=args.variant)

	if args.lyrics:
		composer.export_lyrics(args.lyrics)


def _make_host (settings: machinist.config.Settings, kind: str) -> machinist.hosts.SoundHost:

	if kind == "osc":
		return machinist.hosts.OscHost(settings.osc_host, settings.osc_port)

	return machinist.hosts.MidiHost(device_name=settings.midi_device)


def main (argv: typing.Optional[typing.Sequence[str]] = None) -> int:

	"""
	Command-line entry point.

	Exit codes: 0 success, 2 bad configuration, 3 sound host unavailable.
	"""

	args = build_parser().parse_args(argv)

	logging.basicConfig(level=logging.DEBUG if getattr(args, "verbose", False) else logging.INFO)

	if args.command == "presets":
		_list_presets()
		return 0

	try:
		settings = settings_from_args(args)
		composer = settings.composer()

		if args.command == "export":
			_export(composer, args)
		else:
			composer.on_event("lyric", lambda line: print(f"  >> {line}"))
			composer.play(_make_host(settings, args.host), looping=args.loop)

	except machinist.composer.ConfigurationError as e:
		logger.error(f"Configuration error: {e}")
		return 2

	except machinist.hosts.HostUnavailableError as e:
		logger.error(f"Sound host unavailable: {e}. Export still works: machinist export --midi song.mid")
		return 3

	return 0


if __name__ == "__main__":
	sys.exit(main())
