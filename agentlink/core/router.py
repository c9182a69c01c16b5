"""Point-to-point delivery, broadcast fan-out and filtered observation."""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .errors import DeliveryError, InvalidMessageError, NoHandlerError
from .event_bus import (
    HANDLER_REGISTERED,
    HANDLER_UNREGISTERED,
    MESSAGE_BROADCAST,
    MESSAGE_ROUTED,
    EventBus,
    Subscription,
)
from .models import A2AMessage, MessageFilter, MessageMetadata, MessageType, Participant
from .protocol import correlation_of, format_message, is_broadcast, make_error_message, validate_message
from .registry import AgentRegistry

logger = logging.getLogger(__name__)

MessageHandler = Callable[[A2AMessage], Awaitable[A2AMessage]]
MessageCallback = Callable[[A2AMessage], Union[None, Awaitable[None]]]


@dataclass(slots=True)
class _MessageSubscription:
    filter: MessageFilter
    callback: MessageCallback
    active: bool = True


class MessageRouter:
    """Deliver messages to the handlers installed for each agent.

    Delivery failures never raise out of :meth:`route_message`; they come
    back as ERROR messages addressed to the original sender.
    """

    def __init__(
        self,
        event_bus: EventBus,
        registry: AgentRegistry,
        *,
        system: Optional[Participant] = None,
        broadcast_timeout: Optional[float] = None,
    ) -> None:
        self._event_bus = event_bus
        self._registry = registry
        self._system = system or Participant(id="a2a_system", name="A2A System")
        self._broadcast_timeout = broadcast_timeout
        self._handlers: Dict[str, MessageHandler] = {}
        self._subscriptions: List[_MessageSubscription] = []

    @property
    def system(self) -> Participant:
        return self._system

    def register_handler(self, agent_id: str, handler: MessageHandler) -> None:
        """Install the inbound handler for ``agent_id``, replacing any previous one."""
        self._handlers[agent_id] = handler
        logger.debug("Registered A2A message handler for agent %s", agent_id)
        self._event_bus.emit(HANDLER_REGISTERED, {"agentId": agent_id})

    def unregister_handler(self, agent_id: str) -> None:
        if self._handlers.pop(agent_id, None) is None:
            logger.warning("No A2A message handler registered for agent %s", agent_id)
            return
        self._event_bus.emit(HANDLER_UNREGISTERED, {"agentId": agent_id})

    def has_handler(self, agent_id: str) -> bool:
        return agent_id in self._handlers

    async def route_message(self, message: A2AMessage) -> A2AMessage:
        """Deliver ``message`` to its recipient and return the reply."""
        validation = validate_message(message)
        if not validation.valid:
            error = InvalidMessageError(validation.messages)
            logger.warning("Refusing to route message: %s", error)
            return self._error_reply(message, error.code, str(error))

        if is_broadcast(message):
            responses = await self.broadcast_message(message)
            return format_message(
                A2AMessage(
                    type=MessageType.RESPONSE,
                    sender=self._system,
                    recipient=message.sender,
                    content=f"Message broadcast to {len(responses)} agents",
                    metadata=MessageMetadata(correlation_id=correlation_of(message)),
                )
            )

        recipient_id = message.recipient.id
        logger.debug(
            "Routing A2A message %s from %s to %s", message.id, message.sender.id, recipient_id
        )
        self._event_bus.emit(MESSAGE_ROUTED, {"messageId": message.id, "message": message})
        try:
            response = await self._deliver(recipient_id, message)
        except Exception as exc:  # noqa: BLE001
            logger.error("Error routing A2A message %s to %s: %s", message.id, recipient_id, exc)
            response = self._error_reply(message, DeliveryError.code, _describe(exc))

        await self._notify_subscribers(message)
        return response

    async def broadcast_message(self, message: A2AMessage) -> List[A2AMessage]:
        """Deliver a copy of ``message`` to every registered agent but the sender.

        Deliveries run concurrently and each failure stays with its recipient.
        Returns the replies from recipients that answered.
        """
        sender_id = message.sender.id if message.sender else None
        deliveries = []
        for entry in self._registry.get_all_agents():
            if entry.id == sender_id:
                continue
            if entry.id not in self._handlers:
                logger.warning("No handler registered for agent %s, skipping broadcast", entry.id)
                continue
            directed = replace(message, recipient=Participant(id=entry.id, name=entry.name))
            deliveries.append(self._broadcast_to(directed))

        logger.debug("Broadcasting A2A message %s to %d agents", message.id, len(deliveries))
        results = await asyncio.gather(*deliveries)
        self._event_bus.emit(MESSAGE_BROADCAST, {"messageId": message.id, "message": message})
        return [response for response in results if response is not None]

    def subscribe_to_messages(
        self, filter: Optional[MessageFilter], callback: MessageCallback
    ) -> Subscription:
        subscription = _MessageSubscription(filter=filter or MessageFilter(), callback=callback)
        self._subscriptions.append(subscription)

        def cancel() -> None:
            subscription.active = False
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return Subscription(cancel)

    def clear(self) -> None:
        self._handlers.clear()
        for subscription in self._subscriptions:
            subscription.active = False
        self._subscriptions.clear()

    async def _broadcast_to(self, message: A2AMessage) -> Optional[A2AMessage]:
        recipient_id = message.recipient.id
        try:
            delivery = self._deliver(recipient_id, message)
            if self._broadcast_timeout is not None:
                response = await asyncio.wait_for(delivery, timeout=self._broadcast_timeout)
            else:
                response = await delivery
        except asyncio.TimeoutError:
            logger.error("Broadcast to agent %s timed out", recipient_id)
            return None
        except Exception as exc:  # noqa: BLE001
            logger.error("Error broadcasting to agent %s: %s", recipient_id, exc)
            return None
        await self._notify_subscribers(message)
        return response

    async def _deliver(self, recipient_id: str, message: A2AMessage) -> A2AMessage:
        handler = self._handlers.get(recipient_id)
        if handler is None:
            raise NoHandlerError(recipient_id)
        response = handler(message)
        if inspect.isawaitable(response):
            response = await response
        return response

    async def _notify_subscribers(self, message: A2AMessage) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.active or not subscription.filter.matches(message):
                continue
            try:
                result = subscription.callback(message)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001
                logger.exception("Error in A2A message subscription callback")

    def _error_reply(self, message: Any, code: str, description: str) -> A2AMessage:
        return make_error_message(
            sender=self._system,
            recipient=getattr(message, "sender", None),
            code=code,
            description=description,
            correlation_id=correlation_of(message),
        )


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__
