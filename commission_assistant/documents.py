"""
PV text export: download links and the rendered text body.
"""

from .config import get_config


def pv_text_url(pv_id: int) -> str:
    """Absolute URL of the plain-text export for a PV."""
    return f"{get_config()['app_url']}/api/pvs/{pv_id}/text"


def pv_text_filename(pv_id: int) -> str:
    return f"pv_{pv_id}.txt"


def render_pv_text(meeting_title: str, content: str) -> str:
    return f"Meeting Title: {meeting_title}\n\nContent:\n{content}\n"
