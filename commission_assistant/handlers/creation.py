"""
Creation handlers: commissions and meetings.
"""

import logging

from sqlalchemy import exists, select

from ..context import HandlerContext
from ..errors import PermissionDenied, ValidationFailed
from ..models import (
    ChatReply,
    CreateCommissionParams,
    CreateMeetingParams,
    IntentCategory,
)
from ..resolver import EntityResolver
from ..router import register
from ..storage import Commission, Meeting, commission_members
from ..timeframe import format_friendly, normalize_meeting_date, to_storage

logger = logging.getLogger("commission-assistant.handlers.creation")


async def handle_create_commission(params: CreateCommissionParams, ctx: HandlerContext) -> ChatReply:
    if not await ctx.policy.can_create_commission(ctx.user):
        raise PermissionDenied("Sorry, you don't have permission to create commissions.")

    taken = await ctx.session.scalar(select(exists().where(Commission.name == params.name)))
    if taken:
        raise ValidationFailed(
            f"{CreateCommissionParams.invalid_prefix}A commission with that name already exists."
        )

    commission = Commission(name=params.name, description=params.description)
    ctx.session.add(commission)
    await ctx.session.flush()
    await ctx.session.execute(
        commission_members.insert().values(commission_id=commission.id, user_id=ctx.user.id)
    )
    await ctx.session.flush()

    logger.info(f"Created commission {commission.id} '{commission.name}' for user {ctx.user.id}")
    return ChatReply(
        reply=f'OK, I\'ve created the commission: "{commission.name}" (ID: {commission.id}) '
        "and added you as a member."
    )


async def handle_create_meeting(params: CreateMeetingParams, ctx: HandlerContext) -> ChatReply:
    resolver = EntityResolver(ctx.session, ctx.user)
    commission = await resolver.resolve_commission(
        params.commission_name_or_id, require_membership=True
    )

    if not await ctx.policy.can_create_meeting(ctx.user, commission):
        raise PermissionDenied(
            f"Sorry, you don't have permission to create meetings for the "
            f"'{commission.name}' commission."
        )

    when = normalize_meeting_date(params.date, ctx.now())

    meeting = Meeting(
        title=params.title,
        date=to_storage(when),
        location=params.location,
        gps=params.gps,
        commission_id=commission.id,
    )
    ctx.session.add(meeting)
    await ctx.session.flush()

    logger.info(
        f"Created meeting {meeting.id} '{meeting.title}' in commission {commission.id} "
        f"for user {ctx.user.id}"
    )
    return ChatReply(
        reply=f'OK, I\'ve scheduled the meeting "{meeting.title}" (ID: {meeting.id}) '
        f"for the '{commission.name}' commission on {format_friendly(when)} "
        f"at '{meeting.location}'."
    )


# Register handlers
register(IntentCategory.CREATE_COMMISSION, handle_create_commission, CreateCommissionParams)
register(IntentCategory.CREATE_MEETING, handle_create_meeting, CreateMeetingParams)
