import asyncio
import contextlib
import datetime
import heapq
import itertools
import logging
import random
import time
import typing

import mido

import crystalline.constants
import crystalline.display
import crystalline.event_emitter
import crystalline.lattice
import crystalline.midi_sink
import crystalline.osc
import crystalline.presets
import crystalline.walker


logger = logging.getLogger(__name__)


PresetLike = typing.Union[str, crystalline.presets.Preset]


class Player:

	"""
	Drives a lattice walk in real time and sends the notes to MIDI.

	The player owns the current lattice and its walker.  Selecting a preset
	replaces both; nothing carries over from the previous lattice.  Playback
	runs as a single asyncio task that calls ``Walker.step()``, sends the
	resulting event, then sleeps for the returned interval.  Note-ons are
	released again after their duration.

	When the walk reaches a node with no outgoing edges the loop stops, every
	sounding note is released and a ``"terminated"`` event is emitted.  Select
	a preset again to play on.

	Example:
		```python
		player = crystalline.player.Player(seed=7)
		player.select_preset("cuboid")
		player.display()

		asyncio.run(player.play())
		```
	"""

	def __init__ (
		self,
		output_device_name: typing.Optional[str] = None,
		channel: int = crystalline.constants.DEFAULT_CHANNEL,
		velocity: float = crystalline.constants.DEFAULT_VELOCITY,
		seed: typing.Optional[int] = None,
		min_delay_ms: int = crystalline.constants.MIN_DELAY_MS,
		max_delay_ms: int = crystalline.constants.MAX_DELAY_MS,
		record: bool = False,
		record_filename: typing.Optional[str] = None,
		sink: typing.Optional[crystalline.midi_sink.MidiSink] = None
	) -> None:

		"""Initialize the player.

		Parameters:
			output_device_name: MIDI output port. When omitted the sink
				auto-selects a port when playback starts.
			channel: MIDI channel (0-15) for all notes.
			velocity: Note-on velocity in [0, 1].
			seed: Seed for both lattice delays and edge choice. The same seed
				and preset always give the same walk.
			min_delay_ms: Lowest random node delay (inclusive).
			max_delay_ms: Highest random node delay (exclusive).
			record: When True, record all notes and save a MIDI file on ``stop()``.
			record_filename: Filename for the recording (defaults to a timestamp).
			sink: Use this sink instead of creating a ``MidiSink``.
		"""

		if not 0.0 <= velocity <= 1.0:
			raise ValueError("Velocity must be between 0 and 1")

		if min_delay_ms > max_delay_ms:
			raise ValueError("min_delay_ms cannot exceed max_delay_ms")

		self.sink = sink or crystalline.midi_sink.MidiSink(output_device_name=output_device_name, channel=channel)
		self.rng = random.Random(seed)
		self.min_delay_ms = min_delay_ms
		self.max_delay_ms = max_delay_ms
		self._velocity = velocity

		self.preset: typing.Optional[crystalline.presets.Preset] = None
		self.lattice: typing.Optional[crystalline.lattice.Lattice] = None
		self.walker: typing.Optional[crystalline.walker.Walker] = None
		self.terminated: typing.Optional[crystalline.walker.WalkTerminated] = None
		self.last_step: typing.Optional[crystalline.walker.StepResult] = None

		self.events = crystalline.event_emitter.EventEmitter()
		self.task: typing.Optional[asyncio.Task] = None
		self.running = False
		self._wake = asyncio.Event()

		# Logical playback clock in seconds; it pauses with the player.
		self.clock = 0.0
		self._pending_offs: typing.List[typing.Tuple[float, int, int]] = []
		self._off_counter = itertools.count()

		self.recording = record
		self.record_filename = record_filename
		self.recorded_events: typing.List[typing.Tuple[float, mido.Message]] = []

		self.osc_server: typing.Optional[crystalline.osc.OscBridge] = None
		self._display: typing.Optional[crystalline.display.Display] = None


	@property
	def velocity (self) -> float:

		"""Note-on velocity in [0, 1]; applies to the current walk immediately."""

		return self._velocity


	@velocity.setter
	def velocity (self, value: float) -> None:

		if not 0.0 <= value <= 1.0:
			raise ValueError("Velocity must be between 0 and 1")

		self._velocity = value

		if self.walker is not None:
			self.walker.velocity = value


	@property
	def status (self) -> str:

		"""One of ``"idle"``, ``"empty"``, ``"playing"``, ``"paused"`` or ``"terminated"``."""

		if self.lattice is None:
			return "idle"

		if len(self.lattice) == 0:
			return "empty"

		if self.terminated is not None:
			return "terminated"

		return "playing" if self.running else "paused"


	def on_event (self, event_name: str, callback: typing.Callable[..., typing.Any]) -> None:

		"""
		Register a callback for a named player event.

		Events: ``"start"``, ``"pause"``, ``"stop"``, ``"preset"``, ``"step"``,
		``"note_on"``, ``"note_off"``, ``"terminated"``.
		"""

		self.events.on(event_name, callback)


	def select_preset (self, preset: PresetLike) -> crystalline.lattice.Lattice:

		"""
		Build a fresh lattice from a preset and make it the one to walk.

		Any previous lattice and walk position are discarded and sounding notes
		are released.  Safe to call while playing: the next step walks the new
		lattice, or pauses playback when the new lattice has no nodes.

		Parameters:
			preset: A preset name (case-insensitive) or a ``Preset``.

		Returns:
			The new lattice.
		"""

		if isinstance(preset, str):
			preset = crystalline.presets.get_preset(preset)

		lattice = crystalline.lattice.build_lattice(
			preset.pitches,
			rng = self.rng,
			min_delay_ms = self.min_delay_ms,
			max_delay_ms = self.max_delay_ms
		)

		self._release_all()

		self.preset = preset
		self.lattice = lattice
		self.walker = crystalline.walker.Walker(lattice, rng=self.rng, velocity=self._velocity)
		self.terminated = None
		self.last_step = None

		logger.info(f"Preset selected: {preset.name} ({preset.vertices} vertices)")

		if len(lattice) == 0:
			logger.warning("No notes in lattice!")

		self.events.emit_sync("preset", preset, lattice)

		return lattice


	def display (self, nodes: bool = False) -> None:

		"""
		Show a live status line in the terminal while playing.

		Parameters:
			nodes: When True, also show a row of lattice nodes above the
				status line, with the active node highlighted.
		"""

		self._display = crystalline.display.Display(self, nodes=nodes)

		for event_name in ("step", "start", "pause", "terminated", "preset"):
			self.events.on(event_name, self._display.update)


	def osc (self, receive_port: int = 9000, send_port: int = 9001, send_host: str = "127.0.0.1") -> None:

		"""
		Broadcast walk state over OSC and accept transport commands.

		The bridge starts with playback. See ``crystalline.osc`` for addresses.
		"""

		self.osc_server = crystalline.osc.OscBridge(
			self,
			receive_port = receive_port,
			send_port = send_port,
			send_host = send_host
		)


	async def start (self) -> None:

		"""
		Start (or resume) the walk in a separate asyncio task.

		Raises:
			RuntimeError: No preset has been selected, or the walk has already
				terminated on the current lattice.
			EmptyGraphError: The selected preset has no pitches.
		"""

		if self.running:
			return

		if self.lattice is None or self.walker is None:
			raise RuntimeError("Select a preset before starting playback")

		if len(self.lattice) == 0:
			raise crystalline.lattice.EmptyGraphError("Cannot play a lattice with no nodes")

		if self.terminated is not None:

			active = self.lattice.active_node_id

			if active is None or self.lattice.is_terminal(active):
				raise RuntimeError("The walk has terminated; select a preset to play again")

			self.terminated = None

		self.sink.open()

		if self.osc_server is not None:
			await self.osc_server.start()

		if self._display is not None:
			self._display.start()

		self.running = True
		self._wake = asyncio.Event()
		self.task = asyncio.create_task(self._run_loop())

		logger.info("Player started")

		await self.events.emit_async("start")


	async def pause (self) -> None:

		"""
		Stop stepping and release every sounding note, keeping the walk position.
		"""

		if not self.running:
			return

		self.running = False
		self._wake.set()

		# A cancelled play() cancels the loop task too; the release below must still run.
		if self.task is not None and self.task is not asyncio.current_task():
			with contextlib.suppress(asyncio.CancelledError):
				await self.task

		self.task = None
		self._release_all()

		logger.info("Player paused")

		await self.events.emit_async("pause")


	async def toggle (self) -> None:

		"""Pause when playing, start when paused."""

		if self.running:
			await self.pause()

		else:
			await self.start()


	async def stop (self) -> None:

		"""
		Stop playback and clean up the MIDI port, OSC bridge and display.
		"""

		logger.info("Stopping player...")

		await self.pause()

		self.sink.close()

		if self.osc_server is not None:
			await self.osc_server.stop()

		if self._display is not None:
			self._display.stop()

		self.save_recording()

		logger.info("Player stopped")

		await self.events.emit_async("stop")


	async def play (self) -> None:

		"""
		Start playback and wait until the walk terminates or is cancelled.
		"""

		await self.start()

		try:
			if self.task:
				await self.task
		except asyncio.CancelledError:
			pass
		finally:
			await self.stop()


	async def render (self, steps: int, filename: typing.Optional[str] = None) -> typing.List[crystalline.walker.StepResult]:

		"""Walk without waiting for the wall clock and save the notes to a MIDI file.

		Nothing is sent to the MIDI port.  The walk stops early if it terminates.

		Parameters:
			steps: Maximum number of walk steps.
			filename: Output path (defaults to the record filename or a timestamp).

		Returns:
			The results of every step taken.
		"""

		if steps <= 0:
			raise ValueError("Render steps must be positive")

		if self.running:
			raise RuntimeError("Cannot render while playing")

		if self.lattice is None or self.walker is None:
			raise RuntimeError("Select a preset before rendering")

		if len(self.lattice) == 0:
			raise crystalline.lattice.EmptyGraphError("Cannot render a lattice with no nodes")

		results: typing.List[crystalline.walker.StepResult] = []
		was_recording = self.recording
		self.recording = True
		self.recorded_events = []

		try:
			for _ in range(steps):

				await self._flush_offs(self.clock, live=False)

				result = await self._advance(live=False)
				results.append(result)

				if result.terminated is not None:
					break

				self.clock += result.wait_seconds

			await self._flush_offs(float("inf"), live=False)

			self.save_recording(filename)

		finally:
			self.recording = was_recording
			self.recorded_events = []

		logger.info(f"Rendered {len(results)} steps")

		return results


	async def _run_loop (self) -> None:

		"""Playback loop: step, then sleep until the next step or note-off is due."""

		start_time = time.perf_counter() - self.clock
		next_step_time = self.clock

		while self.running:

			now = time.perf_counter() - start_time
			await self._flush_offs(now)

			if now >= next_step_time:

				if not self.lattice:
					logger.warning("No notes in lattice! Pausing playback")
					await self.pause()
					break

				self.clock = next_step_time
				result = await self._advance()
				next_step_time += result.wait_seconds
				continue

			wake_time = next_step_time

			if self._pending_offs:
				wake_time = min(wake_time, self._pending_offs[0][0])

			# pause() sets the wake event so a long node delay does not hold it up.
			try:
				await asyncio.wait_for(self._wake.wait(), timeout=max(0.0, wake_time - now))
			except asyncio.TimeoutError:
				pass

		if self.terminated is None:
			self.clock = max(self.clock, time.perf_counter() - start_time)


	async def _advance (self, live: bool = True) -> crystalline.walker.StepResult:

		"""Take one walk step at the current clock and dispatch what it produced."""

		assert self.walker is not None

		result = self.walker.step(self.clock)
		self.last_step = result

		await self._dispatch(result.event, live=live)

		if result.event.kind == crystalline.walker.EventKind.NOTE_ON and result.event.duration is not None:
			heapq.heappush(self._pending_offs, (self.clock + result.event.duration, next(self._off_counter), result.event.pitch))

		await self.events.emit_async("step", result)

		if result.terminated is not None:
			await self._terminate(result.terminated, live=live)

		return result


	async def _terminate (self, signal: crystalline.walker.WalkTerminated, live: bool = True) -> None:

		"""Stop the loop and release everything after a dead end."""

		self.terminated = signal
		self.running = False

		logger.warning(f"Walk terminated at node {signal.at_node_id}: no further transitions")

		if live:
			self._release_all()

		await self.events.emit_async("terminated", signal)


	async def _dispatch (self, event: crystalline.walker.NoteEvent, live: bool = True) -> None:

		"""Send an event to the sink and recorder and notify listeners."""

		if live:
			self.sink.send(event)

		if self.recording:
			for message in self.sink.messages_for(event):
				self._record_event(event.timestamp, message)

		await self.events.emit_async(event.kind.value, event)


	async def _flush_offs (self, until: float, live: bool = True) -> None:

		"""Release every note whose duration ended at or before ``until``."""

		while self._pending_offs and self._pending_offs[0][0] <= until:

			off_time, _, pitch = heapq.heappop(self._pending_offs)

			event = crystalline.walker.NoteEvent(
				kind = crystalline.walker.EventKind.NOTE_OFF,
				pitch = pitch,
				velocity = 0.0,
				timestamp = off_time
			)

			await self._dispatch(event, live=live)


	def _release_all (self) -> None:

		"""Drop pending note-offs and release every sounding note."""

		self._pending_offs = []

		if self.sink.sounding:
			logger.debug(f"Releasing {len(self.sink.sounding)} sounding notes")

		for pitch in sorted(self.sink.sounding):
			self._record_event(self.clock, mido.Message('note_off', channel=self.sink.channel, note=pitch, velocity=0))

		self.sink.release_all()


	def _record_event (self, seconds: float, message: mido.Message) -> None:

		"""Record a MIDI message at an absolute time for later export."""

		if not self.recording:
			return

		self.recorded_events.append((seconds, message))


	def save_recording (self, filename: typing.Optional[str] = None) -> typing.Optional[str]:

		"""
		Save the recorded notes to a Standard MIDI File.

		Returns:
			The filename written, or None when there was nothing to save.
		"""

		if not self.recording or not self.recorded_events:
			return None

		if filename is None:
			filename = self.record_filename

		if filename is None:
			filename = datetime.datetime.now().strftime("lattice_%Y%m%d_%H%M%S.mid")

		logger.info(f"Saving MIDI recording ({len(self.recorded_events)} events) to {filename}...")

		tempo = mido.bpm2tempo(crystalline.constants.RECORD_BPM)
		ticks_per_beat = crystalline.constants.RECORD_TICKS_PER_BEAT

		mid = mido.MidiFile(type=1, ticks_per_beat=ticks_per_beat)
		track = mido.MidiTrack()
		mid.tracks.append(track)

		track.append(mido.MetaMessage('set_tempo', tempo=tempo, time=0))

		# Stable sort keeps a note-off ahead of a note-on recorded at the same time.
		events = sorted(self.recorded_events, key=lambda x: x[0])
		last_tick = 0

		for seconds, message in events:
			tick = int(round(mido.second2tick(seconds, ticks_per_beat, tempo)))
			track.append(message.copy(time=max(0, tick - last_tick)))
			last_tick = max(last_tick, tick)

		mid.save(filename)
		logger.info(f"Saved {filename}")

		self.recorded_events = []

		return filename
