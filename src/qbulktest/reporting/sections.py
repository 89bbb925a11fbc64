"""Report section titles and links back to the single-variant views."""
from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

SECTION_TITLES = {
    "failingtests": "Failing tests",
    "notests": "No tests",
    "nogeneralfeedback": "No general feedback",
    "failingupgrades": "Failing upgrade checks",
}

DEFAULT_PREVIEW_URL = "questiontestrun.php"
DEFAULT_INDEX_URL = "bulktestindex.php"


def preview_url(base_url: str, question_id: int, seed: Optional[int] = None) -> str:
    """URL of the focused preview/test page for one question variant."""

    params = {"questionid": question_id}
    if seed is not None:
        params["seed"] = seed
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{urlencode(params)}"
