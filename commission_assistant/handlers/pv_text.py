"""
PV text handler: hands back a download link for a PV's plain-text export.
"""

import logging

from sqlalchemy import select

from ..context import HandlerContext
from ..documents import pv_text_filename, pv_text_url
from ..errors import InternalError, NotFound, PermissionDenied
from ..models import ChatAction, ChatReply, GeneratePvTextParams, IntentCategory
from ..resolver import is_member
from ..router import register
from ..storage import PV, Meeting

logger = logging.getLogger("commission-assistant.handlers.pv_text")


async def handle_generate_pv_text(params: GeneratePvTextParams, ctx: HandlerContext) -> ChatReply:
    pv_id = params.pv_id
    row = (
        await ctx.session.execute(
            select(PV, Meeting).outerjoin(Meeting, PV.meeting_id == Meeting.id).where(PV.id == pv_id)
        )
    ).first()

    if row is None:
        raise NotFound(f"I couldn't find a PV with ID {pv_id}.")
    pv, meeting = row
    if meeting is None:
        logger.error(f"PV {pv_id} has no meeting")
        raise InternalError(f"PV {pv_id} is missing its meeting link")

    denied = (
        f"Sorry, you don't have permission to access the text for PV ID {pv_id} "
        f"(Meeting: '{meeting.title}')."
    )
    if not await is_member(ctx.session, meeting.commission_id, ctx.user.id):
        logger.warning(
            f"User {ctx.user.id} asked for PV {pv_id} outside their commissions "
            f"(commission {meeting.commission_id})"
        )
        raise PermissionDenied(denied)
    if not await ctx.policy.can_view_pv(ctx.user, pv):
        raise PermissionDenied(denied)

    logger.info(f"Providing PV text link for PV {pv_id} to user {ctx.user.id}")
    return ChatReply(
        reply=f"Okay, here is the link to download the text file for PV ID {pv_id} ('{meeting.title}').",
        action=ChatAction(type="download", url=pv_text_url(pv_id), filename=pv_text_filename(pv_id)),
    )


# Register handlers
register(IntentCategory.GENERATE_PV_TEXT, handle_generate_pv_text, GeneratePvTextParams)
