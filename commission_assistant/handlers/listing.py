"""
Read-only listing handlers: commissions, meetings, users and PVs.
"""

import logging

from sqlalchemy import or_, select

from ..context import HandlerContext
from ..errors import PermissionDenied
from ..models import (
    ChatReply,
    IntentCategory,
    ListMeetingsParams,
    ListPvsParams,
    ListUsersParams,
    NoParams,
)
from ..resolver import EntityResolver, member_commission_ids
from ..router import register
from ..storage import PV, Commission, Meeting, User, commission_members
from ..timeframe import TimeframeFilter, format_day, format_listing, from_storage, parse_timeframe

logger = logging.getLogger("commission-assistant.handlers.listing")

MEETING_LIMIT = 15
USER_LIMIT = 20
PV_LIMIT = 10

PV_TEXT_HINT = (
    "You can ask to generate the text for a specific PV using its ID "
    "(e.g., 'generate pv text for id 123')."
)


def _apply_window(stmt, window: TimeframeFilter):
    start, end = window.storage_bounds()
    if start is not None:
        stmt = stmt.where(Meeting.date >= start)
    if end is not None:
        stmt = stmt.where(Meeting.date < end)
    return stmt


async def handle_list_commissions(params: NoParams, ctx: HandlerContext) -> ChatReply:
    logger.debug(f"Listing commissions for user {ctx.user.id}")
    stmt = (
        select(Commission)
        .join(commission_members, commission_members.c.commission_id == Commission.id)
        .where(commission_members.c.user_id == ctx.user.id)
        .order_by(Commission.name)
    )
    commissions = (await ctx.session.scalars(stmt)).all()

    if not commissions:
        return ChatReply(reply="You are not currently a member of any commissions.")

    lines = "\n".join(f"- {c.name} (ID: {c.id})" for c in commissions)
    return ChatReply(reply=f"Here are the commissions you are a member of:\n{lines}")


async def handle_list_meetings(params: ListMeetingsParams, ctx: HandlerContext) -> ChatReply:
    logger.debug(f"Listing meetings for user {ctx.user.id}: {params.model_dump(exclude_none=True)}")
    commission_ids = await member_commission_ids(ctx.session, ctx.user.id)
    if not commission_ids:
        return ChatReply(reply="You need to be in a commission to see meetings.")

    stmt = (
        select(Meeting, Commission.name)
        .join(Commission, Meeting.commission_id == Commission.id)
        .where(Meeting.commission_id.in_(commission_ids))
    )

    timeframe_description = ""
    if params.timeframe:
        window = parse_timeframe(params.timeframe, ctx.now())
        stmt = _apply_window(stmt, window)
        stmt = stmt.order_by(Meeting.date.asc() if window.ascending else Meeting.date.desc())
        timeframe_description = window.description
    else:
        stmt = stmt.order_by(Meeting.date.desc())

    commission_context = ""
    if params.commission_name_or_id:
        resolver = EntityResolver(ctx.session, ctx.user)
        commission = await resolver.resolve_commission(
            params.commission_name_or_id, require_membership=True
        )
        stmt = stmt.where(Meeting.commission_id == commission.id)
        commission_context = f" for the '{commission.name}' commission"

    rows = (await ctx.session.execute(stmt.order_by(Meeting.id).limit(MEETING_LIMIT))).all()

    if not rows:
        return ChatReply(reply=f"No meetings found{commission_context}{timeframe_description}.")

    tz = ctx.tz
    lines = "\n".join(
        f"- {m.title} (ID: {m.id}) for '{name}' on "
        f"{format_listing(from_storage(m.date, tz))} at {m.location}"
        for m, name in rows
    )
    return ChatReply(
        reply=f"Here are the meetings{commission_context}{timeframe_description}:\n{lines}"
    )


async def handle_list_users(params: ListUsersParams, ctx: HandlerContext) -> ChatReply:
    logger.debug(f"Listing users for user {ctx.user.id}: {params.model_dump(exclude_none=True)}")
    stmt = select(User)
    context = ""

    if params.commission_name_or_id:
        resolver = EntityResolver(ctx.session, ctx.user)
        commission = await resolver.resolve_commission(params.commission_name_or_id)
        if not await ctx.policy.can_view_members(ctx.user, commission):
            raise PermissionDenied(
                f"Sorry, you don't have permission to view members of the "
                f"'{commission.name}' commission."
            )
        stmt = stmt.join(commission_members, commission_members.c.user_id == User.id).where(
            commission_members.c.commission_id == commission.id
        )
        context = f" in the '{commission.name}' commission"
    elif not await ctx.policy.can_list_users(ctx.user):
        raise PermissionDenied(
            "Sorry, you don't have permission to view the general user list. "
            "Try specifying a commission you have access to."
        )

    if params.name_or_email:
        term = params.name_or_email
        stmt = stmt.where(
            or_(
                User.name.icontains(term, autoescape=True),
                User.email.icontains(term, autoescape=True),
            )
        )
        context += f" matching '{term}'"

    users = (await ctx.session.scalars(stmt.order_by(User.name, User.id).limit(USER_LIMIT))).all()

    if not users:
        return ChatReply(reply=f"No users found{context}.")

    lines = "\n".join(f"- {u.name} ({u.email})" for u in users)
    return ChatReply(reply=f"Here are the users I found{context}:\n{lines}")


async def handle_list_pvs(params: ListPvsParams, ctx: HandlerContext) -> ChatReply:
    logger.debug(f"Listing PVs for user {ctx.user.id}: {params.model_dump(exclude_none=True)}")
    commission_ids = await member_commission_ids(ctx.session, ctx.user.id)
    if not commission_ids:
        return ChatReply(reply="You need to be part of a commission to view PVs.")

    stmt = (
        select(PV, Meeting, Commission.name)
        .join(Meeting, PV.meeting_id == Meeting.id)
        .join(Commission, Meeting.commission_id == Commission.id)
        .where(Meeting.commission_id.in_(commission_ids))
    )
    filter_description = ""

    if params.commission_name_or_id:
        resolver = EntityResolver(ctx.session, ctx.user)
        commission = await resolver.resolve_commission(
            params.commission_name_or_id, require_membership=True
        )
        stmt = stmt.where(Meeting.commission_id == commission.id)
        filter_description += f" for '{commission.name}' commission"

    if params.meeting_title:
        stmt = stmt.where(Meeting.title.icontains(params.meeting_title, autoescape=True))
        filter_description += f" for meetings titled '{params.meeting_title}'"

    if params.timeframe:
        window = parse_timeframe(params.timeframe, ctx.now())
        stmt = _apply_window(stmt, window)
        filter_description += f" from timeframe '{params.timeframe}'"

    stmt = stmt.order_by(PV.created_at.desc(), PV.id.desc()).limit(PV_LIMIT)
    rows = (await ctx.session.execute(stmt)).all()

    if not rows:
        return ChatReply(reply=f"No PVs found matching your criteria{filter_description}.")

    tz = ctx.tz
    lines = "\n".join(
        f"- PV ID {pv.id} for meeting '{meeting.title}' "
        f"({name} on {format_day(from_storage(meeting.date, tz))})"
        for pv, meeting, name in rows
    )
    return ChatReply(
        reply=f"Here are the latest PVs{filter_description}:\n{lines}\n{PV_TEXT_HINT}"
    )


# Register handlers
register(IntentCategory.LIST_COMMISSIONS, handle_list_commissions, NoParams)
register(IntentCategory.LIST_MEETINGS, handle_list_meetings, ListMeetingsParams)
register(IntentCategory.LIST_USERS, handle_list_users, ListUsersParams)
register(IntentCategory.LIST_PVS, handle_list_pvs, ListPvsParams)
