import re
import secrets
import string
from typing import Optional, Tuple

MIN_PROFILE_TEXT_CHARS = 5
SLUG_LENGTH = 8
SLUG_ALPHABET = string.ascii_lowercase + string.digits
SHEET_URL_PREFIX = "https://docs.google.com/spreadsheets/d/"

_SHEET_ID_RE = re.compile(r"/spreadsheets/d/([a-zA-Z0-9-_]+)")


def build_profile_text(name: Optional[str], bio: Optional[str] = None) -> str:
    """Text that gets embedded for a prospect: 'Name: <name>. Background: <bio>'."""
    parts = []
    if name and name.strip():
        parts.append(f"Name: {name.strip()}")
    if bio and bio.strip():
        parts.append(f"Background: {bio.strip()}")
    return ". ".join(parts)


def is_sufficient_profile(profile_text: str) -> bool:
    return len(profile_text.strip()) >= MIN_PROFILE_TEXT_CHARS


def generate_slug(length: int = SLUG_LENGTH) -> str:
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


def parse_sheet_reference(value: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Returns (spreadsheet_id, spreadsheet_url) for a sheet URL or a bare id."""
    if not value or not value.strip():
        return None, None
    value = value.strip()
    match = _SHEET_ID_RE.search(value)
    if match:
        return match.group(1), value
    return value, f"{SHEET_URL_PREFIX}{value}"
