"""OSC bridge for visualisers and remote control.

Enable it by calling ``player.osc()`` before ``player.play()``.  The bridge
listens on a UDP port (default 9000) for transport commands and sends walk
state to a target host/port (default 127.0.0.1:9001).

Receive Handlers
────────────────
- ``/play``: Start or resume the walk
- ``/pause``: Pause the walk
- ``/toggle``: Play or pause
- ``/preset <string>``: Select a preset (case-insensitive)
- ``/velocity <float>``: Set note-on velocity (0-1)

Send Events
───────────
- ``/lattice/preset <string> <int>``: Preset name and vertex count
- ``/lattice/active <int> <int> <int>``: Active node id, pitch, phase (1 = on)
- ``/lattice/note_on <int> <float> <float>``: Pitch, velocity, duration in seconds
- ``/lattice/note_off <int>``: Pitch
- ``/lattice/terminated <int>``: Node id where the walk ended
- ``/lattice/state <string>``: ``"playing"`` or ``"paused"``
"""

import asyncio
import logging
import typing

import pythonosc.dispatcher
import pythonosc.osc_server
import pythonosc.udp_client

import crystalline.lattice
import crystalline.presets
import crystalline.walker

if typing.TYPE_CHECKING:
	from crystalline.player import Player


logger = logging.getLogger(__name__)


class OscBridge:

	"""Async OSC server/client bound to a player."""

	def __init__ (
		self,
		player: "Player",
		receive_port: int = 9000,
		send_port: int = 9001,
		send_host: str = "127.0.0.1"
	) -> None:

		self._player = player
		self._receive_port = receive_port
		self._send_port = send_port
		self._send_host = send_host

		self._server: typing.Optional[pythonosc.osc_server.AsyncIOOSCUDPServer] = None
		self._transport: typing.Optional[asyncio.BaseTransport] = None
		self._client: typing.Optional[pythonosc.udp_client.SimpleUDPClient] = None
		self._dispatcher = pythonosc.dispatcher.Dispatcher()
		self._tasks: typing.Set[asyncio.Task] = set()

		self._dispatcher.map("/play", self._handle_play)
		self._dispatcher.map("/pause", self._handle_pause)
		self._dispatcher.map("/toggle", self._handle_toggle)
		self._dispatcher.map("/preset", self._handle_preset)
		self._dispatcher.map("/velocity", self._handle_velocity)

		player.on_event("preset", self._on_preset)
		player.on_event("step", self._on_step)
		player.on_event("note_on", self._on_note_on)
		player.on_event("note_off", self._on_note_off)
		player.on_event("terminated", self._on_terminated)
		player.on_event("start", self._on_start)
		player.on_event("pause", self._on_pause)


	@property
	def running (self) -> bool:

		"""True while the receive endpoint is open."""

		return self._transport is not None


	async def start (self) -> None:

		"""Open the send client and the receive endpoint. Does nothing if already running."""

		if self._transport is not None:
			return

		self._client = pythonosc.udp_client.SimpleUDPClient(self._send_host, self._send_port)

		self._server = pythonosc.osc_server.AsyncIOOSCUDPServer(
			("0.0.0.0", self._receive_port),
			self._dispatcher,
			asyncio.get_running_loop()
		)

		transport, _ = await self._server.create_serve_endpoint()
		self._transport = transport

		logger.info(f"OSC listening on :{self._receive_port}, sending to {self._send_host}:{self._send_port}")


	async def stop (self) -> None:

		"""Close the receive endpoint."""

		if self._transport:
			self._transport.close()
			self._transport = None
			logger.info("OSC server stopped")


	def send (self, address: str, *args: typing.Any) -> None:

		"""Send an OSC message."""

		if self._client:
			try:
				self._client.send_message(address, list(args))
			except OSError as e:
				logger.warning(f"OSC send error: {e}")


	def map (self, address: str, handler: typing.Callable) -> None:

		"""Register a custom OSC handler."""

		self._dispatcher.map(address, handler)


	# Player events

	def _on_preset (self, preset: crystalline.presets.Preset, lattice: crystalline.lattice.Lattice) -> None:
		self.send("/lattice/preset", preset.name, preset.vertices)

	def _on_step (self, result: crystalline.walker.StepResult) -> None:
		self.send("/lattice/active", result.node_id, result.pitch, int(result.phase))

	def _on_note_on (self, event: crystalline.walker.NoteEvent) -> None:
		self.send("/lattice/note_on", event.pitch, float(event.velocity), float(event.duration or 0.0))

	def _on_note_off (self, event: crystalline.walker.NoteEvent) -> None:
		self.send("/lattice/note_off", event.pitch)

	def _on_terminated (self, signal: crystalline.walker.WalkTerminated) -> None:
		self.send("/lattice/terminated", signal.at_node_id)

	def _on_start (self) -> None:
		self.send("/lattice/state", "playing")

	def _on_pause (self) -> None:
		self.send("/lattice/state", "paused")


	# Handlers

	def _spawn (self, coroutine: typing.Coroutine) -> None:

		"""Run a player coroutine from a datagram callback and log its failure."""

		task = asyncio.get_running_loop().create_task(coroutine)
		self._tasks.add(task)
		task.add_done_callback(self._task_done)

	def _task_done (self, task: asyncio.Task) -> None:

		self._tasks.discard(task)

		if not task.cancelled() and task.exception() is not None:
			logger.warning(f"OSC command failed: {task.exception()}")

	def _handle_play (self, address: str, *args: typing.Any) -> None:
		self._spawn(self._player.start())

	def _handle_pause (self, address: str, *args: typing.Any) -> None:
		self._spawn(self._player.pause())

	def _handle_toggle (self, address: str, *args: typing.Any) -> None:
		self._spawn(self._player.toggle())

	def _handle_preset (self, address: str, *args: typing.Any) -> None:
		if not args:
			return
		try:
			self._player.select_preset(str(args[0]))
		except ValueError as e:
			logger.warning(f"Invalid OSC preset: {e}")

	def _handle_velocity (self, address: str, *args: typing.Any) -> None:
		if not args:
			return
		try:
			self._player.velocity = float(args[0])
		except (ValueError, TypeError):
			logger.warning(f"Invalid OSC velocity argument: {args[0]}")
