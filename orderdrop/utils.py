import html
from typing import Optional
import bleach

# Enough for any realistic nesting of encoded or split-up tags
MAX_SANITIZE_PASSES = 5


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize a user-supplied string before it is stored and shown to the seller.

    - Removes NULL bytes
    - Decodes HTML entities first, so entity-encoded tags are stripped too
    - Strips HTML tags using bleach.clean(..., strip=True)
    - Decodes the entities bleach leaves behind, so the stored value is plain
      text (templates escape it again on output)
    - Repeats until nothing changes, then trims whitespace
    """
    if value is None:
        return ""
    val = value.replace("\x00", "")
    for _ in range(MAX_SANITIZE_PASSES):
        cleaned = html.unescape(bleach.clean(html.unescape(val), tags=[], strip=True))
        if cleaned == val:
            break
        val = cleaned
    return val.strip()


def human_size(num_bytes: int) -> str:
    size = float(num_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f}{unit}"
        size /= 1024
    return f"{size:.0f}GB"
