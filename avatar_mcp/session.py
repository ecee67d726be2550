"""Conversation-scoped facade over the MCP client.

Every operation becomes a tool call; outcomes are recorded as events and the
interaction state is re-derived from them.
"""

from __future__ import annotations

from typing import Any

from .errors import TOOL_ERROR, AvatarMCPError, ConfigError, NoActiveConversation, SchemaError, ToolError
from .events import UNKNOWN_CONVERSATION, Event, EventLog, InteractionState, clamp_sensitivity
from .logging import get_logger
from .mcp_client import MCPClient
from .provider import DEFAULT_CONVERSATION_PROPERTIES

logger = get_logger("session")

ERROR_EVENT = "system.error"

DEFAULT_CONVERSATION_NAME = "MCP AI Video Chat"
DEFAULT_CONVERSATIONAL_CONTEXT = (
    "You are an advanced AI assistant in a video chat application powered by MCP "
    "(Model Context Protocol). You can see and hear the user through video and audio. "
    "Be engaging, helpful, and natural in your responses. You have access to real-time "
    "interactions through MCP tools."
)
DEFAULT_GREETING = (
    "Hello! I'm your MCP-powered AI assistant. I can see and hear you through this video "
    "chat and have access to advanced tools. How can I help you today?"
)


class InteractionSession:
    """Binds an MCP client to one conversation at a time.

    Interaction methods (``echo``, ``respond``, ``interrupt``,
    ``overwrite_context``, ``set_sensitivity``) never raise: they return
    ``True`` on success and ``False`` on failure, and in both cases append one
    event to ``events``.
    """

    def __init__(
        self,
        client: MCPClient,
        replica_id: str | None = None,
        persona_id: str | None = None,
        events: EventLog | None = None,
        state: InteractionState | None = None,
    ):
        self._client = client
        self._replica_id = replica_id if replica_id is not None else client.config.replica_id
        self._persona_id = persona_id if persona_id is not None else client.config.persona_id
        self.events = events if events is not None else EventLog()
        self.state = state if state is not None else InteractionState()
        self._conversation_id: str | None = None
        self.conversation_url: str | None = None
        self.last_result: Any = None

    @property
    def client(self) -> MCPClient:
        return self._client

    @property
    def conversation_id(self) -> str | None:
        return self._conversation_id

    def bind(self, conversation_id: str, conversation_url: str | None = None) -> None:
        """Attach the session to an existing conversation."""
        if self._conversation_id and self._conversation_id != conversation_id:
            logger.warning(f"Replacing active conversation {self._conversation_id}")
        self._conversation_id = conversation_id
        self.conversation_url = conversation_url
        self.state.is_connected = True

    def unbind(self) -> None:
        self._conversation_id = None
        self.conversation_url = None
        self.state.is_connected = False

    def _require_conversation(self) -> str:
        if not self._conversation_id:
            raise NoActiveConversation()
        return self._conversation_id

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def add_system_event(
        self,
        message: str,
        event_type: str = "system.notification",
        **properties: Any,
    ) -> Event:
        """Append an event and re-derive the interaction state."""
        event = Event(
            event_type=event_type,
            conversation_id=self._conversation_id or UNKNOWN_CONVERSATION,
            properties={"message": message, **properties},
        )
        self.events.append(event)
        self.state.apply(event)
        logger.debug(
            f"Event {event_type}: {message}",
            extra={"event_type": event_type, "conversation_id": event.conversation_id},
        )
        return event

    # -------------------------------------------------------------------------
    # Conversation lifecycle
    # -------------------------------------------------------------------------

    async def start_conversation(self, options: dict[str, Any] | None = None) -> dict[str, Any]:
        """Create a conversation through the ``create_conversation`` tool and bind it.

        Args:
            options: Overrides for conversation_name, conversational_context,
                custom_greeting and properties

        Returns:
            The provider's conversation record (conversation_id, conversation_url, ...)

        Raises:
            ConfigError: If no replica or persona id is configured
            SchemaError: If ``properties`` is not an object
            ToolError: If the tool call fails or returns no conversation id
        """
        options = dict(options or {})
        if not self._replica_id or not self._persona_id:
            error = ConfigError("TAVUS_REPLICA_ID and TAVUS_PERSONA_ID must be set")
            self.add_system_event(f"Failed to start conversation: {error}", ERROR_EVENT)
            raise error

        overrides = options.pop("properties", None) or {}
        if not isinstance(overrides, dict):
            raise SchemaError(f"Conversation properties must be an object, got {overrides!r}")
        properties = {**DEFAULT_CONVERSATION_PROPERTIES, **overrides}
        args = {
            "replica_id": self._replica_id,
            "persona_id": self._persona_id,
            "conversation_name": DEFAULT_CONVERSATION_NAME,
            "conversational_context": DEFAULT_CONVERSATIONAL_CONTEXT,
            "custom_greeting": DEFAULT_GREETING,
            **{key: value for key, value in options.items() if value is not None},
            "properties": properties,
        }

        logger.info(f"Starting conversation {args['conversation_name']!r}")
        try:
            result = await self._client.call_tool("create_conversation", args)
            if not isinstance(result, dict) or not result.get("conversation_id"):
                raise ToolError(TOOL_ERROR, "create_conversation returned no conversation_id", result)
        except ToolError as e:
            logger.error(f"Failed to start conversation: {e}")
            self.add_system_event(f"Failed to start conversation: {e}", ERROR_EVENT)
            raise

        self.bind(result["conversation_id"], result.get("conversation_url"))
        self.add_system_event(
            "Conversation started successfully",
            "system.conversation_started",
            conversation_url=self.conversation_url,
        )
        return result

    async def end_conversation(self) -> bool:
        """End the bound conversation. The binding is cleared even if the call fails."""
        if not self._conversation_id:
            return False

        conversation_id = self._conversation_id
        try:
            await self._client.call_tool("end_conversation", {"conversation_id": conversation_id})
        except ToolError as e:
            logger.error(f"Failed to end conversation {conversation_id}: {e}")
            self.add_system_event(f"Failed to end conversation: {e}", ERROR_EVENT)
            return False
        else:
            self.add_system_event("Conversation ended", "system.conversation_ended")
            return True
        finally:
            self.unbind()

    async def send_message(self, text: str) -> bool:
        """Have the avatar speak ``text`` in the bound conversation."""
        try:
            conversation_id = self._require_conversation()
            await self._client.call_tool("send_message", {"conversation_id": conversation_id, "text": text})
        except AvatarMCPError as e:
            logger.error(f"Error sending message to avatar: {e}")
            self.add_system_event(f"Error sending message to avatar: {e}", ERROR_EVENT)
            return False
        except Exception as e:
            logger.exception("Unexpected error sending message to avatar")
            self.add_system_event(f"Error sending message to avatar: {e}", ERROR_EVENT)
            return False

        self.add_system_event("Message sent to avatar", "conversation.message_sent", text=text)
        return True

    async def get_status(self) -> Any:
        """Fetch the provider's record for the bound conversation.

        Raises:
            NoActiveConversation: If no conversation is bound
            ToolError: If the status call fails
        """
        conversation_id = self._require_conversation()
        return await self._client.call_tool("get_conversation_status", {"conversation_id": conversation_id})

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        """Run an arbitrary tool on behalf of the UI, recording the outcome as an event.

        Raises:
            ToolError: Re-raised after the error event is recorded
        """
        try:
            result = await self._client.call_tool(name, arguments)
        except ToolError as e:
            self.add_system_event(f"Tool {name} failed: {e}", ERROR_EVENT, tool_name=name, code=e.code)
            raise

        self.add_system_event(
            f"Tool {name} executed",
            "conversation.tool_call",
            tool_name=name,
            arguments=dict(arguments or {}),
            result=result,
            source=self._client.last_source,
        )
        return result

    # -------------------------------------------------------------------------
    # In-call interactions
    # -------------------------------------------------------------------------

    async def _interact(
        self,
        interaction_type: str,
        data: dict[str, Any],
        event_type: str,
        message: str,
        label: str,
    ) -> bool:
        try:
            conversation_id = self._require_conversation()
            self.last_result = await self._client.call_tool(
                "send_interaction",
                {
                    "conversation_id": conversation_id,
                    "interaction_type": interaction_type,
                    "data": data,
                },
            )
        except AvatarMCPError as e:
            logger.error(f"{label} failed: {e}")
            self.add_system_event(
                f"{label} failed: {e}", ERROR_EVENT, interaction_type=interaction_type
            )
            return False
        except Exception as e:
            logger.exception(f"{label} failed unexpectedly")
            self.add_system_event(
                f"{label} failed: {e}", ERROR_EVENT, interaction_type=interaction_type
            )
            return False

        self.add_system_event(
            message,
            event_type,
            interaction_type=interaction_type,
            source=self._client.last_source,
            **data,
        )
        return True

    async def echo(self, text: str) -> bool:
        """Make the avatar repeat ``text`` verbatim."""
        return await self._interact(
            "echo", {"text": text}, "conversation.echo", f"Echo sent: {text}", "Echo"
        )

    async def respond(self, text: str) -> bool:
        """Send ``text`` as if the user had said it."""
        return await self._interact(
            "text_respond",
            {"text": text},
            "conversation.text_respond",
            f"Text response sent: {text}",
            "Text response",
        )

    async def interrupt(self, text: str | None = None) -> bool:
        message = f"Interrupt sent: {text}" if text else "Interrupt sent"
        return await self._interact(
            "interrupt",
            {"text": text} if text is not None else {},
            "conversation.interrupt",
            message,
            "Interrupt",
        )

    async def overwrite_context(self, context: str) -> bool:
        return await self._interact(
            "overwrite_context",
            {"conversational_context": context},
            "conversation.context_override",
            "Context overridden",
            "Context override",
        )

    async def set_sensitivity(self, sensitivity: float) -> bool:
        """Set the avatar's interruption sensitivity, clamped to [0, 1]."""
        value = clamp_sensitivity(sensitivity)
        return await self._interact(
            "set_sensitivity",
            {"sensitivity": value},
            "conversation.sensitivity",
            f"Sensitivity set to {round(value * 100)}%",
            "Sensitivity",
        )
