"""Persistence for commissions, meetings, PVs and users."""

from .models import PV, Base, Commission, Meeting, User, commission_members

__all__ = ["Base", "Commission", "Meeting", "PV", "User", "commission_members"]
