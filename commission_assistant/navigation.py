"""
Navigation guard for navigate replies coming back from the upstream model.
"""

import logging
import re

from .models import ChatAction, ChatReply, NavigateAction
from .policy import ActionPolicy
from .storage import User

logger = logging.getLogger("commission-assistant.navigation")

ALLOWED_PREFIXES = ("/commissions", "/meetings", "/users", "/generate-pv", "/send-email")

_COMMISSION_PAGE = re.compile(r"^/commissions/(\d+)(/.*)?$")


def _under(target: str, prefix: str) -> bool:
    return target == prefix or target.startswith(prefix + "/") or target.startswith(prefix + "?")


def is_known_target(target: str) -> bool:
    return target == "/" or any(_under(target, p) for p in ALLOWED_PREFIXES)


class NavigationGuard:
    """Checks a navigate action against the policy before echoing it back."""

    def __init__(self, policy: ActionPolicy):
        self.policy = policy

    async def check(self, user: User, action: NavigateAction, reply: str) -> ChatReply:
        target = (action.target or "").strip()
        if not target:
            return ChatReply(reply="I'm not sure where you want to navigate to.")

        denied = await self._denial(user, target, action)
        if denied:
            logger.warning(f"Navigation to '{target}' denied for user {user.id}")
            return ChatReply(reply=denied, status_code=403)

        logger.info(f"Navigation to '{target}' allowed for user {user.id}")
        return ChatReply(
            reply=reply,
            action=ChatAction(type="navigate", target=target, params=action.params),
        )

    async def _denial(self, user: User, target: str, action: NavigateAction) -> str:
        """Return the denial message, or an empty string if allowed."""
        params = action.params

        if _under(target, "/generate-pv"):
            if not await self.policy.can_open_generate_pv(user, params):
                return "Sorry, you don't have permission to generate PVs."
            return ""

        if _under(target, "/send-email"):
            if not await self.policy.can_open_send_email(user, params):
                return "Sorry, you don't have permission to send emails."
            return ""

        if _under(target, "/users"):
            if not await self.policy.can_open_users(user, params):
                return "Sorry, you don't have permission to view users."
            return ""

        match = _COMMISSION_PAGE.match(target)
        if match:
            if not await self.policy.can_view_commission(user, int(match.group(1))):
                return "Sorry, you don't have permission to view that commission."
            return ""

        if not is_known_target(target):
            return "I cannot navigate to that location."
        return ""
