"""Message bus for agent-to-agent communication."""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .models import BROADCAST, AgentRole, Message, MessageType


MessageHandler = Callable[[Message], Union[None, Awaitable[None]]]


class MessageBus:
    """
    In-memory bus delivering messages to one handler per agent role.

    Every message is archived before routing, whether or not a handler
    receives it.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("grant_agent_orchestrator")
        self._handlers: Dict[AgentRole, MessageHandler] = {}
        self._message_log: List[Message] = []

    def register_handler(self, role: AgentRole, handler: MessageHandler) -> Callable[[], None]:
        """Register the handler for a role, replacing any previous one."""
        role = AgentRole(role)
        self._handlers[role] = handler

        def unregister() -> None:
            if self._handlers.get(role) is handler:
                del self._handlers[role]

        return unregister

    async def send(
        self,
        sender: AgentRole,
        to: Union[AgentRole, str],
        type: MessageType,
        payload: Optional[Dict[str, Any]] = None,
        conversation_id: Optional[str] = None,
    ) -> Message:
        """Archive a message, then deliver it to its recipient(s)."""
        message = Message(
            sender=sender,
            to=to,
            type=type,
            payload=payload or {},
            conversation_id=conversation_id,
        )
        self._message_log.append(message)

        if message.to == BROADCAST:
            # Roster order; snapshot so handlers may (un)register while we deliver
            recipients = [role for role in AgentRole if role in self._handlers]
        elif message.to in self._handlers:
            recipients = [message.to]
        else:
            recipients = []
            self.logger.debug(f"No handler for {message.to}; message {message.id} archived only")

        for role in recipients:
            handler = self._handlers.get(role)
            if handler is None:
                continue
            try:
                outcome = handler(message)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                self.logger.error(f"Error in message handler for {role.value}: {str(e)}")

        return message

    def get_message_log(self, limit: Optional[int] = None) -> List[Message]:
        """Archived messages, oldest first."""
        if limit is None:
            return list(self._message_log)
        return self._message_log[-limit:] if limit > 0 else []

    def clear(self) -> None:
        self._message_log = []
