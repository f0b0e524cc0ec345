import re


def safe_text(s):
    return (s or "").strip()


def strip_code_fences(s):
    """Remove ``` fences a model sometimes wraps its answer in."""
    txt = safe_text(s)
    if txt.startswith("```"):
        i = txt.find("\n")
        txt = (txt[i + 1:] if i != -1 else txt[3:]).strip()
    if txt.endswith("```"):
        txt = txt[:-3].strip()
    return txt


def preview(s, limit=60):
    s = re.sub(r"\s+", " ", safe_text(s))
    return s if len(s) <= limit else s[:limit] + "..."
