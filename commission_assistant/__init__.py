"""
Commission Assistant: chatbot layer for commission and meeting management.

Sends the user's message to the upstream model, classifies the reply and
routes structured intents to handlers running against the application's
database.

Usage:
    from commission_assistant import Chatbot

    bot = Chatbot()
    reply = await bot.process(session, user, "list my commissions", [])
    print(reply.reply, reply.status_code)
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from .classifier import classify
from .context import HandlerContext
from .errors import GENERIC_ERROR_MESSAGE, ChatbotError
from .llm_client import LLMClient
from .models import (
    ChatReply,
    ConversationTurn,
    IntentCategory,
    IntentEnvelope,
    NavigateEnvelope,
    ParsedReply,
)
from .navigation import NavigationGuard
from .policy import ActionPolicy
from .prompt import build_messages
from .router import route
from .storage import User

logger = logging.getLogger("commission-assistant")


class Chatbot:
    """High-level interface: one call per user message."""

    def __init__(
        self,
        llm: Optional[LLMClient] = None,
        policy: Optional[ActionPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the chatbot and register all handlers."""
        from .handlers import register_all_handlers
        register_all_handlers()

        self.llm = llm or LLMClient.from_config()
        self.policy = policy or ActionPolicy()
        self.clock = clock
        self.navigation = NavigationGuard(self.policy)

    def _context(self, session: AsyncSession, user: User) -> HandlerContext:
        ctx = HandlerContext(session=session, user=user, policy=self.policy)
        if self.clock is not None:
            ctx.clock = self.clock
        return ctx

    async def process(
        self,
        session: AsyncSession,
        user: User,
        message: str,
        history: Sequence[ConversationTurn] = (),
    ) -> ChatReply:
        """Process one user message and return the reply with its status."""
        try:
            raw = await self.llm.complete(build_messages(user, message, history))
            parsed = classify(raw)
            return await self.dispatch(session, user, parsed)
        except ChatbotError as e:
            log = logger.error if e.status_code >= 500 else logger.warning
            log(f"Chatbot request for user {user.id} failed ({e.status_code}): {e.message}")
            return ChatReply(reply=e.public_message, status_code=e.status_code)
        except Exception as e:
            logger.error(f"Unexpected chatbot error for user {user.id}: {e}", exc_info=True)
            return ChatReply(reply=GENERIC_ERROR_MESSAGE, status_code=500)

    async def dispatch(self, session: AsyncSession, user: User, parsed: ParsedReply) -> ChatReply:
        """Act on an already classified reply."""
        if isinstance(parsed, IntentEnvelope):
            logger.info(f"Handling intent '{parsed.intent}' for user {user.id}")
            return await route(parsed.intent, parsed.params, self._context(session, user))
        if isinstance(parsed, NavigateEnvelope):
            return await self.navigation.check(user, parsed.action, parsed.reply)
        logger.info(f"Plain text reply for user {user.id}")
        return ChatReply(reply=parsed.text)

    def classify(self, raw: str) -> ParsedReply:
        """Classify an upstream reply without executing (useful for testing)."""
        return classify(raw)


__all__ = [
    "Chatbot",
    "ChatReply",
    "IntentCategory",
    "ParsedReply",
    "classify",
    "route",
]
