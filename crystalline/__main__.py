"""Command-line player.

Usage::

    python -m crystalline
    python -m crystalline --preset cuboid --seed 7
    python -m crystalline --config my.yaml --device "IAC Driver Bus 1"
    python -m crystalline --preset pyramid --render 64 --output pyramid.mid
    python -m crystalline --list-presets

Settings come from ``config.yaml`` (see ``crystalline.config``); flags
override the file.  Press Ctrl+C to stop.
"""

import argparse
import asyncio
import logging
import typing

import crystalline.config
import crystalline.player
import crystalline.presets


logger = logging.getLogger(__name__)


def build_parser () -> argparse.ArgumentParser:

	"""Create the argument parser."""

	parser = argparse.ArgumentParser(prog="crystalline", description="Endless Markov walks over crystal-lattice presets")
	parser.add_argument("--config", default="config.yaml", help="YAML config file (default: config.yaml)")
	parser.add_argument("--preset", help="Preset name, e.g. tetrahedron, pyramid, cuboid")
	parser.add_argument("--seed", type=int, help="Random seed for repeatable walks")
	parser.add_argument("--device", help="MIDI output device name")
	parser.add_argument("--velocity", type=float, help="Note-on velocity (0-1)")
	parser.add_argument("--render", type=int, metavar="STEPS", help="Render STEPS steps to a MIDI file instead of playing")
	parser.add_argument("--output", help="Output file for --render or recording")
	parser.add_argument("--list-presets", action="store_true", help="List available presets and exit")

	return parser


def apply_overrides (config: crystalline.config.Config, args: argparse.Namespace) -> crystalline.config.Config:

	"""Copy command-line flags over file settings and re-validate."""

	if args.preset is not None:
		config.playback.preset = args.preset

	if args.seed is not None:
		config.playback.seed = args.seed

	if args.device is not None:
		config.midi.device_name = args.device

	if args.velocity is not None:
		config.playback.velocity = args.velocity

	if args.output is not None:
		config.record.filename = args.output

	config.validate()

	return config


def create_player (config: crystalline.config.Config) -> crystalline.player.Player:

	"""Build a player with the preset selected and optional display/OSC attached."""

	player = crystalline.player.Player(
		output_device_name = config.midi.device_name,
		channel = config.midi.channel,
		velocity = config.playback.velocity,
		seed = config.playback.seed,
		min_delay_ms = config.playback.min_delay_ms,
		max_delay_ms = config.playback.max_delay_ms,
		record = config.record.enabled,
		record_filename = config.record.filename
	)

	player.select_preset(config.playback.preset)

	if config.display.enabled:
		player.display(nodes=config.display.nodes)

	if config.osc.enabled:
		player.osc(
			receive_port = config.osc.receive_port,
			send_port = config.osc.send_port,
			send_host = config.osc.send_host
		)

	return player


def main (argv: typing.Optional[typing.List[str]] = None) -> int:

	"""
	Main entry point. Returns the process exit code.
	"""

	args = build_parser().parse_args(argv)

	if args.list_presets:
		for name in crystalline.presets.preset_names():
			preset = crystalline.presets.get_preset(name)
			print(f"{name:<12} {preset.vertices} vertices  {list(preset.pitches)}")
		return 0

	config = apply_overrides(crystalline.config.load_config(args.config), args)

	logging.basicConfig(level=config.logging.level.upper())

	logger.info("Crystalline starting...")

	player = create_player(config)

	try:
		if args.render is not None:
			asyncio.run(player.render(args.render, filename=config.record.filename))
		else:
			asyncio.run(player.play())
	except KeyboardInterrupt:
		logger.info("Stopping...")

	return 0


if __name__ == "__main__":
	raise SystemExit(main())
