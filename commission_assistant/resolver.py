"""
Entity resolver: maps free-text commission and user references to rows.

Lookup order:
1. Numeric commission reference: id match or exact name match.
2. User reference that is a valid email: exact email match.
3. Exact (case-sensitive) name match.
4. Case-insensitive partial name match, capped at two candidates.

One candidate resolves; none raises NotFound; two raise Ambiguous.
"""

import logging
import re
from typing import List, Literal, Union

from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy import exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import Ambiguous, MembershipRequired, NotFound
from .storage import Commission, User, commission_members

logger = logging.getLogger("commission-assistant.resolver")

EntityKind = Literal["commission", "user"]

# Candidates fetched for ambiguity detection
CANDIDATE_LIMIT = 2

_email_adapter = TypeAdapter(EmailStr)

# ASCII only; str.isdigit() also accepts characters such as "²" that int() rejects
_NUMERIC_ID = re.compile(r"[0-9]+")


def is_numeric_id(value: str) -> bool:
    return _NUMERIC_ID.fullmatch(value) is not None


def is_email(value: str) -> bool:
    try:
        _email_adapter.validate_python(value)
        return True
    except ValidationError:
        return False


async def is_member(session: AsyncSession, commission_id: int, user_id: int) -> bool:
    """True if the user is attached to the commission."""
    stmt = select(
        exists().where(
            commission_members.c.commission_id == commission_id,
            commission_members.c.user_id == user_id,
        )
    )
    return bool(await session.scalar(stmt))


class EntityResolver:
    """Resolves identifiers on behalf of one acting user."""

    def __init__(self, session: AsyncSession, acting_user: User):
        self.session = session
        self.acting_user = acting_user

    async def resolve(
        self,
        identifier: str,
        kind: EntityKind,
        require_membership: bool = False,
    ) -> Union[Commission, User]:
        if kind == "commission":
            return await self.resolve_commission(identifier, require_membership)
        if kind == "user":
            return await self.resolve_user(identifier)
        raise ValueError(f"Unknown entity kind: {kind}")

    async def resolve_commission(
        self, identifier: str, require_membership: bool = False
    ) -> Commission:
        raw = str(identifier)
        identifier = raw.strip()
        if is_numeric_id(identifier):
            stmt = (
                select(Commission)
                .where(or_(Commission.id == int(identifier), Commission.name == identifier))
                .limit(CANDIDATE_LIMIT)
            )
            rows = list((await self.session.scalars(stmt)).all())
        else:
            rows = await self._by_name(Commission, identifier)

        if not rows:
            logger.info(f"No commission matches '{identifier}'")
            raise NotFound(
                f"I couldn't find a commission matching '{raw}'. "
                "Please provide a valid name or ID."
            )
        if len(rows) > 1:
            options = " or ".join(f"'{c.name}' (ID: {c.id})" for c in rows)
            logger.info(f"Commission reference '{identifier}' is ambiguous")
            raise Ambiguous(
                f"Which commission did you mean? I found {options}. "
                "Please use the exact name or the ID."
            )

        commission = rows[0]
        if require_membership and not await is_member(
            self.session, commission.id, self.acting_user.id
        ):
            logger.warning(
                f"User {self.acting_user.id} is not a member of commission {commission.id}"
            )
            raise MembershipRequired(
                f"You need to be a member of the '{commission.name}' commission "
                "to perform this action."
            )
        return commission

    async def resolve_user(self, identifier: str) -> User:
        raw = str(identifier)
        identifier = raw.strip()
        if is_email(identifier):
            stmt = select(User).where(User.email == identifier).limit(CANDIDATE_LIMIT)
            rows = list((await self.session.scalars(stmt)).all())
        else:
            rows = await self._by_name(User, identifier)

        if not rows:
            logger.info(f"No user matches '{identifier}'")
            raise NotFound(
                f"I couldn't find a user matching '{raw}'. "
                "Please provide their full name or email address."
            )
        if len(rows) > 1:
            options = " or ".join(f"'{u.name}' ({u.email})" for u in rows)
            logger.info(f"User reference '{identifier}' is ambiguous")
            raise Ambiguous(
                f"Which user did you mean? I found {options}. "
                "Please use their full email address for clarity."
            )
        return rows[0]

    async def _by_name(self, model, identifier: str) -> List:
        exact = await self.session.scalars(
            select(model).where(model.name == identifier).limit(CANDIDATE_LIMIT)
        )
        rows = list(exact.all())
        if rows:
            return rows

        partial = await self.session.scalars(
            select(model)
            .where(model.name.icontains(identifier, autoescape=True))
            .order_by(model.id)
            .limit(CANDIDATE_LIMIT)
        )
        return list(partial.all())


async def member_commission_ids(session: AsyncSession, user_id: int) -> List[int]:
    """Ids of every commission the user belongs to."""
    stmt = select(commission_members.c.commission_id).where(
        commission_members.c.user_id == user_id
    )
    return list((await session.scalars(stmt)).all())
