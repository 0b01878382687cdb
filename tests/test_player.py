import asyncio
import contextlib
import pathlib
import typing

import mido
import pytest

import crystalline.lattice
import crystalline.player
import crystalline.presets
import crystalline.walker


LONE = crystalline.presets.Preset(name="LONE", vertices=1, pitches=(60,))
EMPTY = crystalline.presets.Preset(name="EMPTY", vertices=0, pitches=())


def _fast_player (**kwargs: typing.Any) -> crystalline.player.Player:

	"""A player with short node delays so live tests finish quickly."""

	return crystalline.player.Player(
		output_device_name = "Dummy MIDI",
		seed = 1,
		min_delay_ms = 10,
		max_delay_ms = 20,
		**kwargs
	)


def test_select_preset_builds_fresh_lattice (patch_midi: None) -> None:

	"""Each selection discards the previous lattice and walker."""

	player = _fast_player()

	first = player.select_preset("tetrahedron")
	first_walker = player.walker

	second = player.select_preset("cuboid")

	assert second is not first
	assert player.walker is not first_walker
	assert player.walker.lattice is second
	assert len(second) == 8
	assert player.preset is crystalline.presets.CUBOID
	assert player.status == "paused"


def test_preset_event (patch_midi: None) -> None:

	"""Selecting a preset notifies listeners with the preset and lattice."""

	player = _fast_player()
	received: list = []

	player.on_event("preset", lambda preset, lattice: received.append((preset.name, len(lattice))))
	player.select_preset("pyramid")

	assert received == [("PYRAMID", 5)]


def test_velocity_reaches_walker (patch_midi: None) -> None:

	"""Changing player velocity updates the current walker."""

	player = _fast_player()
	player.select_preset("tetrahedron")

	player.velocity = 0.8

	assert player.walker.velocity == 0.8

	with pytest.raises(ValueError):
		player.velocity = 2.0


@pytest.mark.asyncio
async def test_start_without_preset (patch_midi: None) -> None:

	"""Playback needs a preset."""

	player = _fast_player()

	assert player.status == "idle"

	with pytest.raises(RuntimeError):
		await player.start()


@pytest.mark.asyncio
async def test_start_with_empty_preset (patch_midi: None) -> None:

	"""An empty lattice refuses to start."""

	player = _fast_player()
	player.select_preset(EMPTY)

	assert player.status == "empty"

	with pytest.raises(crystalline.lattice.EmptyGraphError):
		await player.start()

	assert player.running is False
	assert player.task is None


@pytest.mark.asyncio
async def test_live_playback_and_pause (fake_output: typing.Callable) -> None:

	"""The loop sends notes while playing and releases them all on pause."""

	player = _fast_player()
	player.select_preset("tetrahedron")

	steps: list[crystalline.walker.StepResult] = []
	player.on_event("step", steps.append)

	await player.start()
	assert player.status == "playing"

	await asyncio.sleep(0.2)
	await player.pause()

	messages = fake_output().messages

	assert len(steps) > 1
	assert any(m.type == "note_on" for m in messages)
	assert all(m.note in (60, 64, 67, 69) for m in messages if m.type in ("note_on", "note_off"))
	assert messages[-1] == mido.Message('control_change', channel=0, control=123, value=0)
	assert player.sink.sounding == set()
	assert player.status == "paused"

	await player.stop()

	assert fake_output().closed is True


@pytest.mark.asyncio
async def test_resume_continues_clock (patch_midi: None) -> None:

	"""Pausing and resuming keeps the logical clock moving forward."""

	player = _fast_player()
	player.select_preset("tetrahedron")

	await player.start()
	await asyncio.sleep(0.1)
	await player.pause()

	paused_at = player.clock

	await player.toggle()
	await asyncio.sleep(0.1)
	await player.toggle()

	assert player.clock >= paused_at
	assert player.walker.step_count > 1

	await player.stop()


@pytest.mark.asyncio
async def test_walk_termination (patch_midi: None) -> None:

	"""A dead end stops playback, releases notes and emits the signal."""

	player = _fast_player()
	player.select_preset(LONE)

	signals: list[crystalline.walker.WalkTerminated] = []
	player.on_event("terminated", signals.append)

	await asyncio.wait_for(player.play(), timeout=5)

	assert signals == [crystalline.walker.WalkTerminated(at_node_id=0)]
	assert player.status == "terminated"
	assert player.running is False

	with pytest.raises(RuntimeError):
		await player.start()

	player.select_preset("tetrahedron")

	assert player.status == "paused"
	assert player.terminated is None


@pytest.mark.asyncio
async def test_render_writes_midi_file (patch_midi: None, tmp_path: pathlib.Path) -> None:

	"""render() walks without waiting and saves a playable MIDI file."""

	player = crystalline.player.Player(seed=5)
	player.select_preset("tetrahedron")

	path = tmp_path / "walk.mid"
	results = await player.render(20, filename=str(path))

	assert len(results) == 20
	assert path.exists()
	assert player.sink.midi_out is None

	mid = mido.MidiFile(str(path))
	notes = [m for m in mid.tracks[0] if m.type in ("note_on", "note_off")]
	note_ons = [m for m in notes if m.type == "note_on"]

	assert len(note_ons) == 20
	assert {m.note for m in notes} <= {60, 64, 67, 69}

	# Every note-on is eventually released.
	assert len([m for m in notes if m.type == "note_off"]) >= len(note_ons)
	assert player.recorded_events == []


@pytest.mark.asyncio
async def test_render_is_repeatable (patch_midi: None, tmp_path: pathlib.Path) -> None:

	"""The same seed renders the same walk."""

	walks = []

	for name in ("a.mid", "b.mid"):
		player = crystalline.player.Player(seed=9)
		player.select_preset("cuboid")
		results = await player.render(30, filename=str(tmp_path / name))
		walks.append([(r.node_id, r.wait_seconds) for r in results])

	assert walks[0] == walks[1]


@pytest.mark.asyncio
async def test_render_stops_on_termination (patch_midi: None, tmp_path: pathlib.Path) -> None:

	"""Rendering a lone node stops after its only step."""

	player = crystalline.player.Player(seed=1)
	player.select_preset(LONE)

	results = await player.render(10, filename=str(tmp_path / "lone.mid"))

	assert len(results) == 1
	assert results[0].terminated is not None
	assert player.status == "terminated"


@pytest.mark.asyncio
async def test_render_rejects_bad_input (patch_midi: None) -> None:

	"""render() validates its preconditions."""

	player = crystalline.player.Player(seed=1)

	with pytest.raises(RuntimeError):
		await player.render(5)

	player.select_preset(EMPTY)

	with pytest.raises(crystalline.lattice.EmptyGraphError):
		await player.render(5)

	with pytest.raises(ValueError):
		await player.render(0)


@pytest.mark.asyncio
async def test_recording_saved_on_stop (patch_midi: None, tmp_path: pathlib.Path) -> None:

	"""With record=True the session is written when playback stops."""

	path = tmp_path / "session.mid"
	player = _fast_player(record=True, record_filename=str(path))
	player.select_preset("pyramid")

	await player.start()
	await asyncio.sleep(0.1)
	await player.stop()

	assert path.exists()

	mid = mido.MidiFile(str(path))

	assert any(m.type == "note_on" for m in mid.tracks[0])
	assert mid.tracks[0][0].type == "set_tempo"


@pytest.mark.asyncio
async def test_each_stop_saves_its_own_session (patch_midi: None, tmp_path: pathlib.Path) -> None:

	"""A second session's file holds only the notes played in that session."""

	first = tmp_path / "first.mid"
	second = tmp_path / "second.mid"

	player = _fast_player(record=True, record_filename=str(first))
	player.select_preset("pyramid")

	await player.start()
	await asyncio.sleep(0.1)
	await player.stop()

	assert first.exists()
	assert player.recorded_events == []

	note_ons: list[crystalline.walker.NoteEvent] = []
	player.on_event("note_on", note_ons.append)
	player.record_filename = str(second)

	await player.start()
	await asyncio.sleep(0.1)
	await player.stop()

	recorded = [m for m in mido.MidiFile(str(second)).tracks[0] if m.type == "note_on"]

	assert len(note_ons) > 0
	assert len(recorded) == len(note_ons)


@pytest.mark.asyncio
async def test_cancelled_play_cleans_up (fake_output: typing.Callable, tmp_path: pathlib.Path) -> None:

	"""Cancelling play() (Ctrl+C under asyncio.run) still releases, closes and saves."""

	path = tmp_path / "cancelled.mid"
	player = _fast_player(record=True, record_filename=str(path))
	player.select_preset("tetrahedron")

	stopped: list[bool] = []
	player.on_event("stop", lambda: stopped.append(True))

	task = asyncio.create_task(player.play())
	await asyncio.sleep(0.1)
	task.cancel()

	with contextlib.suppress(asyncio.CancelledError):
		await task

	assert stopped == [True]
	assert player.running is False
	assert player.task is None
	assert player.sink.sounding == set()
	assert fake_output().closed is True
	assert path.exists()


@pytest.mark.asyncio
async def test_switching_preset_while_playing (patch_midi: None) -> None:

	"""The walk continues on the newly selected lattice."""

	player = _fast_player()
	player.select_preset("tetrahedron")

	await player.start()
	await asyncio.sleep(0.05)

	player.select_preset("cuboid")

	steps: list[crystalline.walker.StepResult] = []
	player.on_event("step", steps.append)

	await asyncio.sleep(0.1)

	assert player.running is True
	assert len(steps) > 0
	assert all(step.pitch in crystalline.presets.CUBOID.pitches for step in steps)

	await player.stop()


@pytest.mark.asyncio
async def test_switching_to_empty_preset_pauses (fake_output: typing.Callable) -> None:

	"""An empty lattice selected mid-walk pauses playback instead of failing."""

	player = _fast_player()
	player.select_preset("tetrahedron")

	paused: list[bool] = []
	player.on_event("pause", lambda: paused.append(True))

	await player.start()
	await asyncio.sleep(0.05)

	player.select_preset(EMPTY)
	await asyncio.sleep(0.1)

	assert player.running is False
	assert player.task is None
	assert player.status == "empty"
	assert paused == [True]
	assert player.sink.sounding == set()

	await player.stop()

	assert fake_output().closed is True

	with pytest.raises(crystalline.lattice.EmptyGraphError):
		await player.start()
