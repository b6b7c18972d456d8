"""Email body rendering: text normalisation, paragraph wrapping and the
header/footer extension points wrapped around every message."""
from __future__ import annotations

import re
from typing import TYPE_CHECKING, List

from bs4 import BeautifulSoup, Comment

from .config import FOOTER_HOOK, HEADER_HOOK, PLAIN_TEXT_HOOK, plain_text_default
from .hooks import HookRegistry

if TYPE_CHECKING:
    from .models import DispatchRecord


_TAG_SPLIT_RE = re.compile(r"(<!--.*?-->|<[^>]*>)", re.DOTALL)
_OPEN_VERBATIM_RE = re.compile(r"^<(pre|code)[\s>]", re.IGNORECASE)
_CLOSE_VERBATIM_RE = re.compile(r"^</(pre|code)\s*>", re.IGNORECASE)

_BLOCK_TAGS = (
    "address|article|aside|blockquote|div|dl|fieldset|footer|form|"
    "h[1-6]|header|hr|li|ol|p|pre|section|table|tbody|td|tfoot|th|thead|tr|ul"
)
_BLOCK_START_RE = re.compile(rf"^</?(?:{_BLOCK_TAGS})[\s/>]", re.IGNORECASE)

_REPLACEMENTS = (
    ("---", "\u2014"),
    ("--", "\u2013"),
    ("...", "\u2026"),
)
_DOUBLE_OPEN_RE = re.compile(r'(^|[\s(\[{\u2014\u2013])"')
_SINGLE_OPEN_RE = re.compile(r"(^|[\s(\[{\u2014\u2013])'")


def strip_tags(markup: str) -> str:
    """Text content of ``markup``: tags and comments removed, entities decoded."""
    if not markup:
        return ""
    soup = BeautifulSoup(str(markup), "html.parser")
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()
    return soup.get_text()


def _texturize_segment(text: str) -> str:
    for needle, replacement in _REPLACEMENTS:
        text = text.replace(needle, replacement)
    text = _DOUBLE_OPEN_RE.sub("\\1\u201c", text)
    text = text.replace('"', "\u201d")
    text = _SINGLE_OPEN_RE.sub("\\1\u2018", text)
    return text.replace("'", "\u2019")


def texturize(text: str) -> str:
    """Typographic clean-up of prose.

    Straight quotes become curly quotes, ``---`` and ``--`` become em and
    en dashes and ``...`` becomes an ellipsis. Markup tags and anything
    inside ``<pre>`` or ``<code>`` is left untouched.
    """
    if not text:
        return ""
    out: List[str] = []
    verbatim = 0
    for part in _TAG_SPLIT_RE.split(str(text)):
        if not part:
            continue
        if part.startswith("<"):
            if _OPEN_VERBATIM_RE.match(part):
                verbatim += 1
            elif _CLOSE_VERBATIM_RE.match(part) and verbatim:
                verbatim -= 1
            out.append(part)
        elif verbatim:
            out.append(part)
        else:
            out.append(_texturize_segment(part))
    return "".join(out)


def autop(text: str) -> str:
    """Wrap blank-line separated blocks in ``<p>`` and turn the remaining
    single newlines into ``<br />``."""
    if not text or not text.strip():
        return ""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    blocks = [block.strip() for block in re.split(r"\n\s*\n", normalized)]
    paragraphs: List[str] = []
    for block in blocks:
        if not block:
            continue
        if _BLOCK_START_RE.match(block):
            paragraphs.append(block)
            continue
        paragraphs.append("<p>" + block.replace("\n", "<br />\n") + "</p>")
    return "\n".join(paragraphs) + "\n"


class ContentRenderer:
    """Builds the final message body around the header/footer hooks."""

    def __init__(self, hooks: HookRegistry) -> None:
        self.hooks = hooks

    def send_as_plain_text(self) -> bool:
        return bool(self.hooks.apply_filters(PLAIN_TEXT_HOOK, plain_text_default()))

    def render(self, key: str, fields: "DispatchRecord", plain_mode: bool) -> str:
        parts: List[str] = []
        parts.extend(self._collect(HEADER_HOOK, key, fields, plain_mode))
        if plain_mode:
            parts.append(texturize(fields.plain_content or ""))
        else:
            parts.append(autop(texturize(fields.rich_content or "")))
        parts.extend(self._collect(FOOTER_HOOK, key, fields, plain_mode))
        return "".join(parts)

    def _collect(self, hook: str, key: str, fields: "DispatchRecord", plain_mode: bool) -> List[str]:
        return [str(out) for out in self.hooks.do_action(hook, key, fields, plain_mode) if out]
