"""
Intent router that maps IntentCategory to handler functions and dispatches.
"""

import logging
from typing import Awaitable, Callable, Dict, Optional, Tuple, Type

from pydantic import ValidationError

from .context import HandlerContext
from .errors import ChatbotError
from .models import ChatReply, IntentCategory, IntentParams, WRITE_CATEGORIES

logger = logging.getLogger("commission-assistant.router")

# Type for handler functions
HandlerFunc = Callable[[IntentParams, HandlerContext], Awaitable[ChatReply]]

# Registry of category -> (handler, params model)
_handlers: Dict[IntentCategory, Tuple[HandlerFunc, Type[IntentParams]]] = {}


def register(
    category: IntentCategory, handler: HandlerFunc, params_model: Type[IntentParams]
) -> None:
    """Register a handler function and its params model for an intent category."""
    _handlers[category] = (handler, params_model)
    logger.debug(f"Registered handler for {category.value}")


def get_handler(category: IntentCategory) -> Optional[Tuple[HandlerFunc, Type[IntentParams]]]:
    """Get the registered handler and params model for a category."""
    return _handlers.get(category)


def _unsupported(intent: str) -> ChatReply:
    return ChatReply(
        reply=f"I understood the request type '{intent}', but I cannot perform that specific action yet."
    )


async def route(intent: str, params: Dict, ctx: HandlerContext) -> ChatReply:
    """
    Decode the params for ``intent`` and run its handler.

    Always returns a ChatReply; errors are mapped to a reply and status.
    """
    # Step 1: Known category with a handler
    try:
        category = IntentCategory(intent)
    except ValueError:
        logger.warning(f"Unknown intent '{intent}'")
        return _unsupported(intent)

    entry = get_handler(category)
    if entry is None:
        logger.warning(f"No handler registered for intent '{intent}'")
        return _unsupported(intent)
    handler, params_model = entry

    # Step 2: Decode params
    try:
        decoded = params_model.model_validate(params or {})
    except ValidationError as e:
        logger.warning(f"Invalid params for {category.value}: {e.error_count()} errors")
        return ChatReply(reply=params_model.describe_errors(e), status_code=422)

    # Step 3: Execute handler
    logger.info(
        f"Routing {category.value} for user {ctx.user.id}"
        + (" (write)" if category in WRITE_CATEGORIES else "")
    )
    try:
        return await handler(decoded, ctx)
    except ChatbotError as e:
        logger.warning(f"{category.value} rejected ({e.status_code}): {e.message}")
        return ChatReply(reply=e.public_message, status_code=e.status_code)
    except Exception as e:
        logger.error(f"Handler error for {category.value}: {e}", exc_info=True)
        await ctx.session.rollback()
        return ChatReply(reply=params_model.failure_reply, status_code=500)
