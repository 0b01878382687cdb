"""MIDI output for walk events.

``MidiSink`` turns the ``NoteEvent`` records produced by the walker into
``mido`` messages on a single channel and remembers which notes are
sounding so they can all be released when the walk stops.
"""

import logging
import typing

import mido

import crystalline.constants
import crystalline.walker


logger = logging.getLogger(__name__)


def select_output_device (device_name: typing.Optional[str] = None) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:

	"""
	Select and open a MIDI output port.

	If ``device_name`` is given, only that port is opened.  Otherwise the only
	available port is used, or the user is asked to pick one when several
	exist.

	Returns:
		A tuple of (device_name, port) or (None, None) when nothing could be opened.
	"""

	try:
		outputs = mido.get_output_names()
		logger.info(f"Available MIDI outputs: {outputs}")

		if not outputs:
			logger.error("No MIDI output devices found.")
			return None, None

		if device_name is not None:

			if device_name not in outputs:
				logger.error(f"MIDI output device '{device_name}' not found. Available devices: {outputs}")
				return None, None

			selected_name = device_name

		elif len(outputs) == 1:
			selected_name = outputs[0]
			logger.info(f"One MIDI output found - using '{selected_name}'")

		else:
			selected_name = _prompt_for_device(outputs)

		port = mido.open_output(selected_name)
		logger.info(f"Opened MIDI output: {selected_name}")

		return selected_name, port

	except Exception as e:
		logger.error(f"Failed to open MIDI output: {e}")
		return None, None


def _prompt_for_device (outputs: typing.List[str]) -> str:

	"""Ask on the console which of several outputs to use."""

	print("\nAvailable MIDI output devices:\n")

	for i, name in enumerate(outputs, 1):
		print(f"  {i}. {name}")

	print()

	while True:
		try:
			choice = int(input(f"Select a device (1-{len(outputs)}): "))
			if 1 <= choice <= len(outputs):
				break
		except (ValueError, EOFError):
			pass
		print(f"Enter a number between 1 and {len(outputs)}.")

	selected_name = outputs[choice - 1]

	print("\nTip: To skip this prompt, set midi.device_name in config.yaml or pass --device:\n")
	print(f"  python -m crystalline --device \"{selected_name}\"\n")

	return selected_name


def to_midi_velocity (velocity: float) -> int:

	"""Scale a [0, 1] velocity to MIDI 1-127 (a note-on never uses 0)."""

	scaled = int(round(velocity * crystalline.constants.MAX_MIDI_VELOCITY))

	return max(1, min(crystalline.constants.MAX_MIDI_VELOCITY, scaled))


class MidiSink:

	"""
	Sends walk events to a MIDI output port.

	The port is opened by ``open()`` and closed by ``close()``.  Sending with
	no open port is a no-op, so a sink without a device still tracks which
	notes would be sounding.
	"""

	def __init__ (
		self,
		output_device_name: typing.Optional[str] = None,
		channel: int = crystalline.constants.DEFAULT_CHANNEL
	) -> None:

		"""
		Parameters:
			output_device_name: MIDI output port name, or None to auto-select.
			channel: MIDI channel (0-15) for every message.
		"""

		if not 0 <= channel < crystalline.constants.MIDI_CHANNELS:
			raise ValueError("MIDI channel must be between 0 and 15")

		self.output_device_name = output_device_name
		self.channel = channel
		self.midi_out: typing.Optional[typing.Any] = None
		self.sounding: typing.Set[int] = set()


	def open (self) -> bool:

		"""
		Open the output port. Returns True when a port is available.
		"""

		if self.midi_out is not None:
			return True

		device_name, midi_out = select_output_device(self.output_device_name)

		if device_name:
			self.output_device_name = device_name
			self.midi_out = midi_out

		return self.midi_out is not None


	def close (self) -> None:

		"""Release everything and close the port."""

		self.release_all()

		if self.midi_out is not None:
			self.midi_out.close()
			self.midi_out = None


	def messages_for (self, event: crystalline.walker.NoteEvent) -> typing.List[mido.Message]:

		"""
		Build the MIDI messages for a walk event.
		"""

		if event.kind == crystalline.walker.EventKind.NOTE_ON:
			return [mido.Message('note_on', channel=self.channel, note=event.pitch, velocity=to_midi_velocity(event.velocity))]

		if event.kind == crystalline.walker.EventKind.NOTE_OFF:
			return [mido.Message('note_off', channel=self.channel, note=event.pitch, velocity=0)]

		return []


	def send (self, event: crystalline.walker.NoteEvent) -> None:

		"""
		Send a note-on or note-off and update the sounding set.
		"""

		if event.kind == crystalline.walker.EventKind.NOTE_ON:
			self.sounding.add(event.pitch)

		elif event.kind == crystalline.walker.EventKind.NOTE_OFF:
			self.sounding.discard(event.pitch)

		for message in self.messages_for(event):
			self._send_message(message)


	def release_all (self) -> None:

		"""
		Send note-off for every sounding note, then All Notes Off.
		"""

		for pitch in sorted(self.sounding):
			self._send_message(mido.Message('note_off', channel=self.channel, note=pitch, velocity=0))

		self.sounding.clear()

		self._send_message(mido.Message('control_change', channel=self.channel, control=crystalline.constants.CC_ALL_NOTES_OFF, value=0))


	def _send_message (self, message: mido.Message) -> None:

		if self.midi_out is None:
			return

		try:
			self.midi_out.send(message)
		except Exception:
			logger.exception("MIDI send failed (device may be disconnected)")
