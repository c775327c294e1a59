import re


def normalize_text(s: str) -> str:
    if not s:
        return ""
    # Normalize Windows line endings
    s = s.replace("\r\n", "\n").replace("\r", "\n")
    s = s.replace("\u00a0", " ")  # nbsp -> space
    # Whitespace-only lines count as blank
    s = re.sub(r"^[ \t]+$", "", s, flags=re.MULTILINE)
    # Max 2 consecutive newlines
    s = re.sub(r"\n{3,}", "\n\n", s)
    # Collapse runs of spaces/tabs
    s = re.sub(r"[ \t]+", " ", s)
    return s.strip()
