"""
Prompt assembly for the upstream chat-completion call.
"""

import logging
from typing import Dict, List, Sequence

from .models import ConversationTurn
from .storage import User

logger = logging.getLogger("commission-assistant.prompt")

MAX_HISTORY_TOKENS = 1500

_SYSTEM_PROMPT = """\
You are the assistant of a commission and meeting management application, talking to user {user_id} ({user_name}).
You help with commissions, meetings, PVs (meeting minutes) and users.

Reply in exactly one of these forms:

A. Plain text, for general questions, answers and clarifying questions.

B. An intent object, with no other text around it:
   {{"intent": "<name>", "params": {{...}}}}
   Intents and their params:
   - list_commissions: none
   - list_meetings: timeframe ("today", "this week", "upcoming", "past", or a date phrase), commission_name_or_id
   - list_users: commission_name_or_id, name_or_email
   - list_pvs: commission_name_or_id, meeting_title, timeframe
   - create_commission: name (required), description
   - create_meeting: commission_name_or_id, title, date, location (all required), gps ("lat,lng")
   - add_commission_member / remove_commission_member: commission_name_or_id, user_name_or_email (both required)
   - suggest_details: item_type ("meeting" or "commission"), context
   - generate_pv_text: pv_id (required, a number)
   If a required value is missing, ask for it in plain text instead.

C. A navigation object, with no other text around it:
   {{"reply": "<short message>", "action": {{"type": "navigate", "target": "<path>", "params": {{...}}}}}}
   Targets: /commissions, /commissions/<id>, /meetings, /users, /generate-pv (meeting_id), /send-email (commission_id).

Rules: keep replies short, use the conversation history for context, never invent ids or names,
and ask which one was meant when a commission or user reference is ambiguous.
"""


def build_system_prompt(user: User) -> str:
    return _SYSTEM_PROMPT.format(user_id=user.id, user_name=user.name)


def append_history(
    messages: List[Dict[str, str]],
    history: Sequence[ConversationTurn],
    max_history_tokens: int = MAX_HISTORY_TOKENS,
) -> List[Dict[str, str]]:
    """
    Insert prior turns after the system message, newest first, until the
    approximate token budget (4 characters per token) runs out.
    """
    used = 0.0
    for turn in reversed(history):
        approx_tokens = len(turn.text) / 4
        if used + approx_tokens > max_history_tokens:
            logger.debug("History token limit reached, dropping older turns")
            break
        role = "user" if turn.sender == "user" else "assistant"
        messages.insert(1, {"role": role, "content": turn.text})
        used += approx_tokens
    return messages


def build_messages(user: User, message: str, history: Sequence[ConversationTurn]) -> List[Dict[str, str]]:
    messages = [{"role": "system", "content": build_system_prompt(user)}]
    messages = append_history(messages, history)
    messages.append({"role": "user", "content": message})
    return messages
