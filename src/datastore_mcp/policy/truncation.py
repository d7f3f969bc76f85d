from __future__ import annotations


def cap_text(text: str, *, max_bytes: int) -> tuple[str, bool]:
    """Cut ``text`` to at most ``max_bytes`` UTF-8 bytes without splitting a character."""
    raw = text.encode("utf-8")
    if len(raw) <= max_bytes:
        return text, False

    truncated_raw = raw[:max_bytes]
    truncated_text = truncated_raw.decode("utf-8", errors="ignore")
    return truncated_text, True


def cap_response(text: str, *, max_bytes: int) -> str:
    """Cap a response segment and append a marker when it was cut."""
    capped, truncated = cap_text(text, max_bytes=max_bytes)
    if not truncated:
        return capped
    return f"{capped}\n[Response truncated at {max_bytes} bytes]"
