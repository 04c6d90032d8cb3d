"""
Suggestion handler: proposes details for a new meeting or commission.

Nothing is written; the reply carries a ``suggestions`` map the frontend can
use to pre-fill its forms.
"""

import logging
import string
from datetime import datetime, timedelta
from typing import Any, Dict, List

from sqlalchemy import exists, func, select

from ..context import HandlerContext
from ..errors import PermissionDenied
from ..models import ChatReply, IntentCategory, SuggestDetailsParams
from ..router import register
from ..storage import Commission, Meeting, commission_members
from ..timeframe import format_weekday_time

logger = logging.getLogger("commission-assistant.handlers.suggestions")

ONLINE_LOCATIONS = ("online", "teams", "zoom", "google meet", "webex", "remote")
DEFAULT_LOCATION = "Conference Room A"

CLOSING_LINE = "\nHow do these suggestions look? You can use them or provide your own details."


def limit_text(text: str, limit: int) -> str:
    """Truncate to ``limit`` characters, marking the cut with '...'."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def next_meeting_slot(now: datetime) -> datetime:
    """Next weekday 10:00 or 14:00 slot after ``now``."""
    if now.minute > 45:
        candidate = now + timedelta(hours=1)
    else:
        candidate = now + timedelta(minutes=60 - now.minute)

    hour = 10 if (candidate.hour < 12 or candidate.hour > 16) else 14
    slot = candidate.replace(hour=hour, minute=0, second=0, microsecond=0)
    if slot <= now:
        slot += timedelta(days=1)
    if slot.weekday() >= 5:
        slot += timedelta(days=7 - slot.weekday())
    return slot


async def _suggest_meeting(params: SuggestDetailsParams, ctx: HandlerContext):
    suggestions: Dict[str, Any] = {}
    header = "Okay, thinking about details for the meeting"
    if params.context:
        header += f" about '{params.context}'"
    lines: List[str] = [header + "."]

    # Commission: last used, else first joined
    recent = (
        await ctx.session.execute(
            select(Commission.id, Commission.name)
            .join(Meeting, Meeting.commission_id == Commission.id)
            .join(commission_members, commission_members.c.commission_id == Commission.id)
            .where(commission_members.c.user_id == ctx.user.id)
            .order_by(Meeting.created_at.desc(), Meeting.id.desc())
            .limit(1)
        )
    ).first()
    if recent:
        suggestions["commission_name_or_id"] = recent.id
        lines.append(
            f"- **Commission:** How about '{recent.name}' (ID: {recent.id})? You used it recently."
        )
    else:
        first = (
            await ctx.session.execute(
                select(Commission.id, Commission.name)
                .join(commission_members, commission_members.c.commission_id == Commission.id)
                .where(commission_members.c.user_id == ctx.user.id)
                .order_by(commission_members.c.created_at, Commission.id)
                .limit(1)
            )
        ).first()
        if first:
            suggestions["commission_name_or_id"] = first.id
            lines.append(f"- **Commission:** Maybe '{first.name}' (ID: {first.id})?")
        else:
            lines.append(
                "- **Commission:** Which commission should this be for? "
                "(I couldn't easily suggest one)."
            )

    # Date/time
    slot = next_meeting_slot(ctx.now())
    suggestions["date"] = slot.strftime("%Y-%m-%d %H:%M")
    lines.append(f"- **Date/Time:** Maybe {format_weekday_time(slot)} ({suggestions['date']})?")

    # Location: last physical one used in the user's commissions
    last_location = await ctx.session.scalar(
        select(Meeting.location)
        .join(commission_members, commission_members.c.commission_id == Meeting.commission_id)
        .where(commission_members.c.user_id == ctx.user.id)
        .where(func.lower(Meeting.location).not_in(ONLINE_LOCATIONS))
        .order_by(Meeting.created_at.desc(), Meeting.id.desc())
        .limit(1)
    )
    if last_location:
        suggestions["location"] = last_location
        lines.append(f"- **Location:** Use '{last_location}' again?")
    else:
        suggestions["location"] = DEFAULT_LOCATION
        lines.append(f"- **Location:** Maybe '{DEFAULT_LOCATION}' or 'Online' if remote?")

    # Title
    if params.context:
        suggestions["title"] = string.capwords(limit_text(params.context, 50)) + " Meeting"
        lines.append(f"- **Title:** How about '{suggestions['title']}'?")
    else:
        lines.append("- **Title:** What should the meeting title be?")

    return lines, suggestions


async def _suggest_commission(params: SuggestDetailsParams, ctx: HandlerContext):
    suggestions: Dict[str, Any] = {}
    header = "Okay, thinking about details for the commission"
    if params.context:
        header += f" related to '{params.context}'"
    lines: List[str] = [header + "."]

    if params.context:
        name = string.capwords(limit_text(params.context, 40)) + " Commission"
        taken = await ctx.session.scalar(select(exists().where(Commission.name == name)))
        if taken:
            name = f"{name} ({ctx.now().year})"
        suggestions["name"] = name
        note = " (added year as similar exists)" if taken else ""
        lines.append(f"- **Name:** How about '{name}'{note}?")
    else:
        lines.append("- **Name:** What should the commission be called?")

    focus = limit_text(params.context, 100) if params.context else "relevant activities and objectives."
    suggestions["description"] = f"A commission focused on {focus}"
    lines.append(f"- **Description:** We could use: '{suggestions['description']}'.")

    return lines, suggestions


async def handle_suggest_details(params: SuggestDetailsParams, ctx: HandlerContext) -> ChatReply:
    if not await ctx.policy.can_suggest(ctx.user):
        raise PermissionDenied("Sorry, you don't have permission to get suggestions.")

    logger.info(f"Suggesting {params.item_type} details for user {ctx.user.id}")
    if params.item_type == "meeting":
        lines, suggestions = await _suggest_meeting(params, ctx)
    elif params.item_type == "commission":
        lines, suggestions = await _suggest_commission(params, ctx)
    else:
        return ChatReply(
            reply="I can suggest details, but I need to know if it's for a 'meeting' "
            "or a 'commission'. What are we setting up?"
        )

    lines.append(CLOSING_LINE)
    return ChatReply(reply="\n".join(lines), suggestions=suggestions)


# Register handlers
register(IntentCategory.SUGGEST_DETAILS, handle_suggest_details, SuggestDetailsParams)
