import re

_DOUBLE_ASTERISK = re.compile(r"\*\*")
_MARKDOWN_HEADING = re.compile(r"^#{1,6}\s+", re.MULTILINE)


def clean_reply(text: str) -> str:
    """Adapt markdown from the model to WhatsApp formatting (``*bold*``, no headings)."""
    if not text:
        return ""
    text = _DOUBLE_ASTERISK.sub("*", text)
    return _MARKDOWN_HEADING.sub("", text)
