#!/usr/bin/env python3
"""
Message Bus for Chat Export
Asynchronous envelope delivery between isolated execution contexts
(content scripts, background coordinator, popup, preview).

Delivery is best-effort and never retried. Every envelope and every response
is deep-copied on delivery so contexts never share mutable state.
"""

import asyncio
import copy
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union

from models import Envelope

logger = logging.getLogger(__name__)

NO_RECEIVER_ERROR = "Could not establish connection. Receiving end does not exist."

class DeliveryError(Exception):
    """The recipient could not be reached or rejected the envelope"""

class DeliveryTimeout(DeliveryError):
    """No response arrived within the caller's timeout"""

@dataclass
class DeliveryResult:
    """Outcome reported to a sender's result callback"""
    response: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

class Responder:
    """Answers one envelope; only the first completion is delivered"""

    def __init__(self, complete: Callable[[DeliveryResult], None]):
        self._complete_callback = complete
        self._done = False
        self._deferred = False

    @property
    def done(self) -> bool:
        return self._done

    @property
    def deferred(self) -> bool:
        return self._deferred

    def respond(self, value: Any = None) -> None:
        self.complete(DeliveryResult(response=value))

    def defer(self) -> "DeferredResponse":
        """Keep the exchange open past the handler's return"""
        self._deferred = True
        return DeferredResponse(self)

    def complete(self, result: DeliveryResult) -> None:
        if self._done:
            logger.debug("Response already delivered, ignoring second completion")
            return
        self._done = True
        self._complete_callback(result)

class DeferredResponse:
    """Handle for completing an exchange after the handler returned"""

    def __init__(self, responder: Responder):
        self._responder = responder

    @property
    def done(self) -> bool:
        return self._responder.done

    def resolve(self, value: Any = None) -> None:
        self._responder.complete(DeliveryResult(response=value))

    def reject(self, error: Union[str, Exception]) -> None:
        self._responder.complete(DeliveryResult(error=str(error)))

Handler = Callable[[Envelope, Responder], Union[Any, Awaitable[Any]]]
ResultCallback = Callable[[DeliveryResult], None]

class MessageBus:
    """Routes envelopes to the single listener registered per context"""

    def __init__(self):
        self._handlers: Dict[str, Handler] = {}
        self._tasks: Set[asyncio.Task] = set()

    def register(self, context: str, handler: Handler) -> None:
        if context in self._handlers:
            logger.debug(f"Replacing listener for context {context}")
        self._handlers[context] = handler

    def unregister(self, context: str) -> None:
        self._handlers.pop(context, None)

    def is_registered(self, context: str) -> bool:
        return context in self._handlers

    def send(self, recipient: str, envelope: Envelope, on_result: Optional[ResultCallback] = None) -> None:
        """
        Deliver an envelope asynchronously

        Args:
            recipient: Context name of the receiver
            envelope: Envelope to deliver (copied, the caller keeps its own)
            on_result: Invoked at most once with the response or a delivery failure
        """
        loop = asyncio.get_running_loop()
        loop.call_soon(self._deliver, loop, recipient, copy.deepcopy(envelope), on_result)

    async def request(self, recipient: str, envelope: Envelope, timeout: Optional[float] = None) -> Any:
        """
        Send and wait for the response

        Args:
            recipient: Context name of the receiver
            envelope: Envelope to deliver
            timeout: Seconds to wait; None waits indefinitely

        Returns:
            The recipient's response

        Raises:
            DeliveryTimeout: If no response arrived in time (a late one is dropped)
            DeliveryError: If the recipient was unreachable or failed
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def on_result(result: DeliveryResult) -> None:
            if future.done():
                logger.debug(f"Late response to {envelope.action} ({envelope.correlation_id}) ignored")
                return
            future.set_result(result)

        self.send(recipient, envelope, on_result)

        try:
            result = await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise DeliveryTimeout(f"No response from {recipient} to {envelope.action} within {timeout}s")

        if not result.ok:
            raise DeliveryError(result.error)
        return result.response

    async def close(self) -> None:
        """Cancel handlers still running and drop all listeners"""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._handlers.clear()

    def _deliver(self, loop: asyncio.AbstractEventLoop, recipient: str,
                 envelope: Envelope, on_result: Optional[ResultCallback]) -> None:
        def complete(result: DeliveryResult) -> None:
            if not result.ok:
                logger.warning(f"Delivery of {envelope.action} to {recipient} failed: {result.error}")
            if on_result is not None:
                loop.call_soon(self._invoke_callback, on_result, copy.deepcopy(result))

        handler = self._handlers.get(recipient)
        if handler is None:
            complete(DeliveryResult(error=NO_RECEIVER_ERROR))
            return

        responder = Responder(complete)
        try:
            outcome = handler(envelope, responder)
        except Exception as e:
            logger.error(f"Handler in {recipient} failed on {envelope.action}: {e}")
            responder.complete(DeliveryResult(error=str(e)))
            return

        if inspect.isawaitable(outcome):
            task = loop.create_task(self._await_handler(outcome, responder, recipient, envelope))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return

        if not responder.done and not responder.deferred:
            responder.respond(outcome)

    async def _await_handler(self, outcome: Awaitable[Any], responder: Responder,
                             recipient: str, envelope: Envelope) -> None:
        try:
            value = await outcome
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Handler in {recipient} failed on {envelope.action}: {e}")
            responder.complete(DeliveryResult(error=str(e)))
            return

        if not responder.done and not responder.deferred:
            responder.respond(value)

    @staticmethod
    def _invoke_callback(on_result: ResultCallback, result: DeliveryResult) -> None:
        try:
            on_result(result)
        except Exception as e:
            logger.error(f"Result callback failed: {e}")
