"""
Content normalizer for provider message bodies.

Turns provider-native markup into plain text for rendering and previews.
This is a regex cleanup, not an HTML parser: a ``<`` without a closing
``>`` swallows the rest of the string.
"""

import re

_TAG_RE = re.compile(r"<[^>]*>|<.*", re.DOTALL)
_ENTITY_RE = re.compile(r"&(nbsp|amp|lt|gt|quot|#[^;\s&]*);")
_DECIMAL_RE = re.compile(r"[0-9]+")
_HEX_RE = re.compile(r"[0-9A-Fa-f]+")
_WHITESPACE_RE = re.compile(r"\s{2,}")

NAMED_ENTITIES: dict[str, str] = {
    "nbsp": " ",
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "quot": '"',
}

_MAX_CODE_POINT = 0x10FFFF


def _decode_numeric(reference: str) -> str:
    """Decode the body of a ``&#...;`` reference, or return "" if invalid."""
    body = reference[1:]
    if body[:1] in ("x", "X"):
        if not _HEX_RE.fullmatch(body[1:]):
            return ""
        code = int(body[1:], 16)
    elif _DECIMAL_RE.fullmatch(body):
        code = int(body, 10)
    else:
        return ""

    if code == 160:
        return " "
    if code > _MAX_CODE_POINT or 0xD800 <= code <= 0xDFFF:
        return ""
    return chr(code)


def _replace_entity(match: re.Match[str]) -> str:
    name = match.group(1)
    if name.startswith("#"):
        return _decode_numeric(name)
    return NAMED_ENTITIES[name]


def strip_tags(raw: str | None) -> str:
    """Remove everything between ``<`` and the next ``>``."""
    if not raw:
        return ""
    return _TAG_RE.sub("", raw)


def decode_entities(text: str | None) -> str:
    """
    Decode the supported character references in a single pass.

    Named: ``&nbsp; &amp; &lt; &gt; &quot;``. Numeric: ``&#NNN;`` and
    ``&#xHHH;`` (``&#39;`` and ``&#160;`` included). Unparseable or
    out-of-range numeric references decode to the empty string.

    Decoded text is never rescanned, so escaped entities survive one
    level: ``&amp;lt;`` becomes ``&lt;``, not ``<``.
    """
    if not text:
        return ""
    return _ENTITY_RE.sub(_replace_entity, text)


def normalize(raw: str | None) -> str:
    """
    Convert a provider message body into plain display text.

    Args:
        raw: Provider-supplied content, possibly None.

    Returns:
        Text with tags stripped, entities decoded, whitespace runs
        collapsed to one space and the ends trimmed.

    Examples:
        >>> normalize("Hello &amp; welcome <b>friend</b>")
        'Hello & welcome friend'
    """
    text = decode_entities(strip_tags(raw))
    return _WHITESPACE_RE.sub(" ", text).strip()
