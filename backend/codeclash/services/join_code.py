import secrets, string
from urllib.parse import urlencode
from codeclash.config import settings

# No 0/O or 1/I: codes get read aloud and typed from screenshots
ALPHABET = "".join(c for c in string.ascii_uppercase + string.digits if c not in "01IO")

def generate_code(length: int | None = None) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length or settings.join_code_length))

def normalize_code(raw: str | None) -> str:
    """Join codes are case-insensitive; surrounding whitespace is ignored."""
    return (raw or "").strip().upper()

def invite_link(contest_id, code: str, base_url: str | None = None) -> str:
    base = (base_url or settings.invite_base_url).rstrip("/")
    return f"{base}/contests/{contest_id}/join?{urlencode({'code': code})}"
