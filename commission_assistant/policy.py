"""
Authorization seam for chatbot actions.

Every guarded action has its own method. The default policy allows
everything; deployments subclass ActionPolicy and override the checks they
need. Handlers turn a False answer into PermissionDenied.
"""

from typing import Any, Dict, Optional

from .storage import PV, Commission, User


class ActionPolicy:
    """Default-allow policy."""

    # --- Commissions ---

    async def can_create_commission(self, user: User) -> bool:
        return True

    async def can_view_commission(self, user: User, commission_id: int) -> bool:
        return True

    async def can_view_members(self, user: User, commission: Commission) -> bool:
        return True

    async def can_add_member(self, user: User, commission: Commission, member: User) -> bool:
        return True

    async def can_remove_member(self, user: User, commission: Commission, member: User) -> bool:
        return True

    # --- Meetings / PVs ---

    async def can_create_meeting(self, user: User, commission: Commission) -> bool:
        return True

    async def can_view_pv(self, user: User, pv: PV) -> bool:
        return True

    # --- Users ---

    async def can_list_users(self, user: User) -> bool:
        return True

    # --- Suggestions ---

    async def can_suggest(self, user: User) -> bool:
        return True

    # --- Navigation targets ---

    async def can_open_generate_pv(self, user: User, params: Dict[str, Any]) -> bool:
        return True

    async def can_open_send_email(self, user: User, params: Dict[str, Any]) -> bool:
        return True

    async def can_open_users(self, user: User, params: Optional[Dict[str, Any]] = None) -> bool:
        return True
