from typing import Optional

MAX_TITLE_LENGTH = 40
DEFAULT_TITLE = "New chat"
ELLIPSIS = "..."


def title_for(text: Optional[str]) -> str:
    """Derive a chat title from the opening message.

    Leading blank lines are skipped, so the first non-blank line is used.
    """
    if not text:
        return DEFAULT_TITLE

    lines = text.strip().splitlines()
    first_line = lines[0].strip() if lines else ""
    if not first_line:
        return DEFAULT_TITLE

    if len(first_line) > MAX_TITLE_LENGTH:
        first_line = first_line[:MAX_TITLE_LENGTH - len(ELLIPSIS)] + ELLIPSIS

    return first_line[0].upper() + first_line[1:]
