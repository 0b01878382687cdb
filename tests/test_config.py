import pathlib

import pytest

import crystalline.config


def test_missing_file_gives_defaults (tmp_path: pathlib.Path) -> None:

	"""A missing config file falls back to defaults."""

	config = crystalline.config.load_config(str(tmp_path / "absent.yaml"))

	assert config.playback.preset == "tetrahedron"
	assert config.playback.velocity == 0.2
	assert config.playback.min_delay_ms == 300
	assert config.playback.max_delay_ms == 1000
	assert config.midi.device_name is None
	assert config.osc.enabled is False
	assert config.display.enabled is True


def test_yaml_overrides (tmp_path: pathlib.Path) -> None:

	"""Values in the file replace the defaults of their section only."""

	path = tmp_path / "config.yaml"
	path.write_text(
		"midi:\n"
		"  device_name: Synth\n"
		"  channel: 2\n"
		"playback:\n"
		"  preset: cuboid\n"
		"  seed: 7\n"
		"osc:\n"
		"  enabled: true\n"
		"  send_port: 7000\n"
	)

	config = crystalline.config.load_config(str(path))

	assert config.midi.device_name == "Synth"
	assert config.midi.channel == 2
	assert config.playback.preset == "cuboid"
	assert config.playback.seed == 7
	assert config.playback.velocity == 0.2
	assert config.osc.enabled is True
	assert config.osc.send_port == 7000
	assert config.osc.receive_port == 9000


def test_empty_file_gives_defaults (tmp_path: pathlib.Path) -> None:

	"""An empty YAML document is the same as no settings."""

	path = tmp_path / "config.yaml"
	path.write_text("")

	assert crystalline.config.load_config(str(path)) == crystalline.config.Config()


def test_unknown_section (tmp_path: pathlib.Path) -> None:

	"""Typos in section names are reported."""

	with pytest.raises(ValueError, match="playbak"):
		crystalline.config.from_dict({"playbak": {"preset": "cuboid"}})


def test_unknown_key () -> None:

	"""Typos in keys are reported."""

	with pytest.raises(ValueError, match="velocty"):
		crystalline.config.from_dict({"playback": {"velocty": 0.5}})


@pytest.mark.parametrize("data", [
	{"playback": {"velocity": 1.5}},
	{"playback": {"min_delay_ms": 800, "max_delay_ms": 400}},
	{"midi": {"channel": 16}},
	{"logging": {"level": "LOUD"}},
])
def test_invalid_values (data: dict) -> None:

	"""Out-of-range settings raise ValueError."""

	with pytest.raises(ValueError):
		crystalline.config.from_dict(data)


@pytest.mark.parametrize("data, key", [
	({"midi": {"channel": "x"}}, "midi.channel"),
	({"midi": {"channel": True}}, "midi.channel"),
	({"playback": {"velocity": "loud"}}, "playback.velocity"),
	({"playback": {"seed": 1.5}}, "playback.seed"),
	({"osc": {"enabled": "yes please"}}, "osc.enabled"),
	({"logging": {"level": 10}}, "logging.level"),
])
def test_wrong_value_types (data: dict, key: str) -> None:

	"""Values of the wrong type raise ValueError naming the setting."""

	with pytest.raises(ValueError, match=key):
		crystalline.config.from_dict(data)


def test_integer_velocity_accepted () -> None:

	"""Whole numbers are valid where a float is expected."""

	config = crystalline.config.from_dict({"playback": {"velocity": 1, "seed": None}})

	assert config.playback.velocity == 1
	assert config.playback.seed is None
