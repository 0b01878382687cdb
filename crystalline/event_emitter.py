import asyncio
import inspect
import typing


CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	Named-event dispatch for player observers.

	Listeners may be plain functions or coroutine functions.  ``emit_sync``
	is used from code that cannot await (it refuses coroutine listeners);
	``emit_async`` runs plain listeners inline and awaits coroutine ones
	together.
	"""

	def __init__ (self) -> None:

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}


	def on (self, event_name: str, callback: CallbackType) -> None:

		"""
		Register a listener for an event name.
		"""

		self._listeners.setdefault(event_name, []).append(callback)


	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Remove a listener.

		Raises ``ValueError`` if the listener is not registered for the event.
		"""

		listeners = self._listeners.get(event_name, [])

		if callback not in listeners:
			raise ValueError(f"Callback not registered for event {event_name!r}")

		listeners.remove(callback)


	def listener_count (self, event_name: str) -> int:

		"""Number of listeners registered for an event name."""

		return len(self._listeners.get(event_name, []))


	def emit_sync (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Call every plain listener for an event immediately.
		"""

		for callback in list(self._listeners.get(event_name, [])):

			if inspect.iscoroutinefunction(callback):
				raise ValueError(f"Async listener for {event_name!r} encountered in emit_sync")

			callback(*args, **kwargs)


	async def emit_async (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Call plain listeners inline, then await coroutine listeners together.
		"""

		pending: typing.List[typing.Awaitable[typing.Any]] = []

		for callback in list(self._listeners.get(event_name, [])):

			if inspect.iscoroutinefunction(callback):
				pending.append(callback(*args, **kwargs))

			else:
				callback(*args, **kwargs)

		if pending:
			await asyncio.gather(*pending)
