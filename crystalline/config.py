"""YAML configuration for the command-line player.

Every key is optional.  A missing file gives the defaults below::

    midi:
      device_name: null      # auto-select
      channel: 0
    playback:
      preset: tetrahedron
      velocity: 0.2
      seed: null
      min_delay_ms: 300
      max_delay_ms: 1000
    record:
      enabled: false
      filename: null
    osc:
      enabled: false
      receive_port: 9000
      send_port: 9001
      send_host: 127.0.0.1
    display:
      enabled: true
      nodes: false
    logging:
      level: INFO
"""

import dataclasses
import logging
import os
import typing

import yaml

import crystalline.constants


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class MidiConfig:

	device_name: typing.Optional[str] = None
	channel: int = crystalline.constants.DEFAULT_CHANNEL


@dataclasses.dataclass
class PlaybackConfig:

	preset: str = "tetrahedron"
	velocity: float = crystalline.constants.DEFAULT_VELOCITY
	seed: typing.Optional[int] = None
	min_delay_ms: int = crystalline.constants.MIN_DELAY_MS
	max_delay_ms: int = crystalline.constants.MAX_DELAY_MS


@dataclasses.dataclass
class RecordConfig:

	enabled: bool = False
	filename: typing.Optional[str] = None


@dataclasses.dataclass
class OscConfig:

	enabled: bool = False
	receive_port: int = 9000
	send_port: int = 9001
	send_host: str = "127.0.0.1"


@dataclasses.dataclass
class DisplayConfig:

	enabled: bool = True
	nodes: bool = False


@dataclasses.dataclass
class LoggingConfig:

	level: str = "INFO"


@dataclasses.dataclass
class Config:

	"""All settings for a command-line session."""

	midi: MidiConfig = dataclasses.field(default_factory=MidiConfig)
	playback: PlaybackConfig = dataclasses.field(default_factory=PlaybackConfig)
	record: RecordConfig = dataclasses.field(default_factory=RecordConfig)
	osc: OscConfig = dataclasses.field(default_factory=OscConfig)
	display: DisplayConfig = dataclasses.field(default_factory=DisplayConfig)
	logging: LoggingConfig = dataclasses.field(default_factory=LoggingConfig)

	def validate (self) -> None:

		"""
		Raise ``ValueError`` for settings the player would reject.
		"""

		if not 0 <= self.midi.channel < crystalline.constants.MIDI_CHANNELS:
			raise ValueError(f"midi.channel must be between 0 and 15, got {self.midi.channel}")

		if not 0.0 <= self.playback.velocity <= 1.0:
			raise ValueError(f"playback.velocity must be between 0 and 1, got {self.playback.velocity}")

		if self.playback.min_delay_ms < 0 or self.playback.min_delay_ms > self.playback.max_delay_ms:
			raise ValueError("playback delays must satisfy 0 <= min_delay_ms <= max_delay_ms")

		if logging.getLevelName(self.logging.level.upper()) not in (logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL):
			raise ValueError(f"Unknown logging.level: {self.logging.level}")


_SECTIONS: typing.Dict[str, type] = {
	"midi": MidiConfig,
	"playback": PlaybackConfig,
	"record": RecordConfig,
	"osc": OscConfig,
	"display": DisplayConfig,
	"logging": LoggingConfig,
}


def _check_type (key: str, value: typing.Any, annotation: typing.Any) -> None:

	"""Raise ValueError when a YAML value does not match the setting's type."""

	if typing.get_origin(annotation) is typing.Union:
		allowed = typing.get_args(annotation)
	else:
		allowed = (annotation,)

	if float in allowed:
		allowed = allowed + (int,)

	# bool is an int subclass, so "channel: true" would otherwise pass.
	if not isinstance(value, allowed) or (isinstance(value, bool) and bool not in allowed):
		expected = " or ".join("null" if t is type(None) else t.__name__ for t in allowed)
		raise ValueError(f"{key} must be {expected}, got {value!r}")


def from_dict (data: typing.Optional[typing.Dict[str, typing.Any]]) -> Config:

	"""
	Build a validated ``Config`` from parsed YAML.

	Unknown sections and keys raise ``ValueError`` so typos are not silently ignored.
	"""

	data = data or {}

	if not isinstance(data, dict):
		raise ValueError("Config root must be a mapping")

	sections: typing.Dict[str, typing.Any] = {}

	for name, values in data.items():

		if name not in _SECTIONS:
			raise ValueError(f"Unknown config section: {name}")

		section_cls = _SECTIONS[name]
		known = {field.name for field in dataclasses.fields(section_cls)}
		values = values or {}

		if not isinstance(values, dict):
			raise ValueError(f"Config section {name!r} must be a mapping")

		unknown = set(values) - known

		if unknown:
			raise ValueError(f"Unknown keys in config section {name!r}: {sorted(unknown)}")

		for field in dataclasses.fields(section_cls):
			if field.name in values:
				_check_type(f"{name}.{field.name}", values[field.name], field.type)

		sections[name] = section_cls(**values)

	config = Config(**sections)
	config.validate()

	return config


def load_config (config_path: str = "config.yaml") -> Config:

	"""
	Load configuration from a YAML file, falling back to defaults when it is missing.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return Config()

	with open(config_path, "r") as f:
		return from_dict(yaml.safe_load(f))
