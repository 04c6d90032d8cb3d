"""
Tests for meeting and commission suggestions.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import func, select

from commission_assistant.errors import PermissionDenied
from commission_assistant.handlers.suggestions import (
    CLOSING_LINE,
    handle_suggest_details,
    limit_text,
    next_meeting_slot,
)
from commission_assistant.models import SuggestDetailsParams
from commission_assistant.policy import ActionPolicy
from commission_assistant.storage import Commission, Meeting

UTC = ZoneInfo("UTC")


class TestNextMeetingSlot:
    @pytest.mark.parametrize(
        "now,expected",
        [
            # Tuesday afternoon, too late for 14:00 -> Wednesday 10:00
            (datetime(2026, 3, 10, 16, 30, tzinfo=UTC), datetime(2026, 3, 11, 10, 0, tzinfo=UTC)),
            # Tuesday morning -> 14:00 the same day
            (datetime(2026, 3, 10, 11, 50, tzinfo=UTC), datetime(2026, 3, 10, 14, 0, tzinfo=UTC)),
            # Tuesday early -> 10:00 the same day
            (datetime(2026, 3, 10, 8, 5, tzinfo=UTC), datetime(2026, 3, 10, 10, 0, tzinfo=UTC)),
            # Friday evening -> Monday 10:00
            (datetime(2026, 3, 13, 17, 10, tzinfo=UTC), datetime(2026, 3, 16, 10, 0, tzinfo=UTC)),
            # Saturday morning -> Monday 10:00
            (datetime(2026, 3, 14, 8, 0, tzinfo=UTC), datetime(2026, 3, 16, 10, 0, tzinfo=UTC)),
        ],
    )
    def test_slots(self, now, expected):
        assert next_meeting_slot(now) == expected


class TestLimitText:
    def test_short_text_unchanged(self):
        assert limit_text("budget", 10) == "budget"

    def test_long_text_truncated(self):
        assert limit_text("a" * 60, 50) == "a" * 50 + "..."


class TestMeetingSuggestions:
    @pytest.mark.asyncio
    async def test_full_suggestions(self, session, alice, make_commission, make_meeting, ctx_for):
        finance = await make_commission("Finance", alice)
        culture = await make_commission("Culture", alice)
        await make_meeting(finance, "Old", datetime(2026, 2, 1, 10, 0), "Room 7",
                           created_at=datetime(2026, 2, 1, 9, 0))
        await make_meeting(culture, "Call", datetime(2026, 3, 1, 10, 0), "Zoom",
                           created_at=datetime(2026, 3, 1, 9, 0))

        result = await handle_suggest_details(
            SuggestDetailsParams(item_type="Meeting", context="budget planning"), ctx_for(alice)
        )

        assert result.status_code == 200
        assert result.suggestions == {
            "commission_name_or_id": culture.id,
            "date": "2026-03-11 10:00",
            "location": "Room 7",
            "title": "Budget Planning Meeting",
        }
        lines = result.reply.split("\n")
        assert lines[0] == "Okay, thinking about details for the meeting about 'budget planning'."
        assert lines[1] == (
            f"- **Commission:** How about 'Culture' (ID: {culture.id})? You used it recently."
        )
        assert lines[2] == "- **Date/Time:** Maybe Wednesday at 10:00 AM (2026-03-11 10:00)?"
        assert lines[3] == "- **Location:** Use 'Room 7' again?"
        assert lines[4] == "- **Title:** How about 'Budget Planning Meeting'?"
        assert result.reply.endswith(CLOSING_LINE)

    @pytest.mark.asyncio
    async def test_defaults_without_history(self, session, alice, make_commission, ctx_for):
        finance = await make_commission("Finance", alice)

        result = await handle_suggest_details(SuggestDetailsParams(item_type="meeting"), ctx_for(alice))

        assert result.suggestions["commission_name_or_id"] == finance.id
        assert result.suggestions["location"] == "Conference Room A"
        assert "title" not in result.suggestions
        assert f"- **Commission:** Maybe 'Finance' (ID: {finance.id})?" in result.reply
        assert "- **Title:** What should the meeting title be?" in result.reply

    @pytest.mark.asyncio
    async def test_no_commission(self, session, alice, ctx_for):
        result = await handle_suggest_details(SuggestDetailsParams(item_type="meeting"), ctx_for(alice))
        assert "commission_name_or_id" not in result.suggestions
        assert "Which commission should this be for?" in result.reply

    @pytest.mark.asyncio
    async def test_nothing_written(self, session, alice, make_commission, ctx_for):
        await make_commission("Finance", alice)
        await handle_suggest_details(SuggestDetailsParams(item_type="meeting", context="x"), ctx_for(alice))
        assert await session.scalar(select(func.count()).select_from(Meeting)) == 0


class TestCommissionSuggestions:
    @pytest.mark.asyncio
    async def test_name_and_description(self, session, alice, ctx_for):
        result = await handle_suggest_details(
            SuggestDetailsParams(item_type="commission", context="urban mobility"), ctx_for(alice)
        )
        assert result.suggestions == {
            "name": "Urban Mobility Commission",
            "description": "A commission focused on urban mobility",
        }
        assert result.reply.startswith(
            "Okay, thinking about details for the commission related to 'urban mobility'."
        )

    @pytest.mark.asyncio
    async def test_existing_name_gets_year(self, session, alice, make_commission, ctx_for):
        await make_commission("Urban Mobility Commission")

        result = await handle_suggest_details(
            SuggestDetailsParams(item_type="commission", context="urban mobility"), ctx_for(alice)
        )
        assert result.suggestions["name"] == "Urban Mobility Commission (2026)"
        assert "(added year as similar exists)" in result.reply
        assert await session.scalar(select(func.count()).select_from(Commission)) == 1

    @pytest.mark.asyncio
    async def test_without_context(self, session, alice, ctx_for):
        result = await handle_suggest_details(SuggestDetailsParams(item_type="commission"), ctx_for(alice))
        assert "name" not in result.suggestions
        assert result.suggestions["description"] == (
            "A commission focused on relevant activities and objectives."
        )


class TestUnknownItemType:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("item_type", [None, "party"])
    async def test_clarification(self, alice, ctx_for, item_type):
        result = await handle_suggest_details(SuggestDetailsParams(item_type=item_type), ctx_for(alice))
        assert result.suggestions is None
        assert result.reply == (
            "I can suggest details, but I need to know if it's for a 'meeting' or a 'commission'. "
            "What are we setting up?"
        )

    @pytest.mark.asyncio
    async def test_policy_denied(self, alice, ctx_for):
        class NoSuggestions(ActionPolicy):
            async def can_suggest(self, user):
                return False

        with pytest.raises(PermissionDenied):
            await handle_suggest_details(
                SuggestDetailsParams(item_type="meeting"), ctx_for(alice, NoSuggestions())
            )
