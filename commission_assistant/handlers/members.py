"""
Commission membership handlers: add and remove members.

Both operations are idempotent: adding an existing member or removing a
non-member is reported back without touching the membership table.
"""

import logging

from ..context import HandlerContext
from ..errors import PermissionDenied
from ..models import AddMemberParams, ChatReply, IntentCategory, RemoveMemberParams
from ..resolver import EntityResolver, is_member
from ..router import register
from ..storage import commission_members

logger = logging.getLogger("commission-assistant.handlers.members")


async def handle_add_member(params: AddMemberParams, ctx: HandlerContext) -> ChatReply:
    resolver = EntityResolver(ctx.session, ctx.user)
    commission = await resolver.resolve_commission(params.commission_name_or_id)
    member = await resolver.resolve_user(params.user_name_or_email)

    if not await ctx.policy.can_add_member(ctx.user, commission, member):
        raise PermissionDenied(
            f"Sorry, you cannot add '{member.name}' to the '{commission.name}' commission."
        )

    if await is_member(ctx.session, commission.id, member.id):
        logger.info(f"User {member.id} already in commission {commission.id}, skipping add")
        return ChatReply(reply=f"'{member.name}' is already a member of '{commission.name}'.")

    await ctx.session.execute(
        commission_members.insert().values(commission_id=commission.id, user_id=member.id)
    )
    await ctx.session.flush()
    logger.info(f"User {ctx.user.id} added user {member.id} to commission {commission.id}")
    return ChatReply(reply=f"OK, I've added '{member.name}' to the '{commission.name}' commission.")


async def handle_remove_member(params: RemoveMemberParams, ctx: HandlerContext) -> ChatReply:
    resolver = EntityResolver(ctx.session, ctx.user)
    commission = await resolver.resolve_commission(params.commission_name_or_id)
    member = await resolver.resolve_user(params.user_name_or_email)

    if not await ctx.policy.can_remove_member(ctx.user, commission, member):
        raise PermissionDenied(
            f"Sorry, you cannot remove '{member.name}' from the '{commission.name}' commission."
        )

    if not await is_member(ctx.session, commission.id, member.id):
        logger.info(f"User {member.id} not in commission {commission.id}, skipping remove")
        return ChatReply(
            reply=f"'{member.name}' is not a member of '{commission.name}', so I cannot remove them."
        )

    await ctx.session.execute(
        commission_members.delete().where(
            commission_members.c.commission_id == commission.id,
            commission_members.c.user_id == member.id,
        )
    )
    await ctx.session.flush()
    logger.info(f"User {ctx.user.id} removed user {member.id} from commission {commission.id}")
    return ChatReply(
        reply=f"OK, I've removed '{member.name}' from the '{commission.name}' commission."
    )


# Register handlers
register(IntentCategory.ADD_COMMISSION_MEMBER, handle_add_member, AddMemberParams)
register(IntentCategory.REMOVE_COMMISSION_MEMBER, handle_remove_member, RemoveMemberParams)
