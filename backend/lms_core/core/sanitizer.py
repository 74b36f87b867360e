import html as html_lib
import logging
import re
from collections.abc import Callable
from typing import NamedTuple

from bs4 import BeautifulSoup
from bs4.element import CData, Comment, Declaration, Doctype, ProcessingInstruction, Tag

logger = logging.getLogger(__name__)

MarkupParser = Callable[[str], BeautifulSoup]

ALLOWED_TAGS = frozenset(
    {
        # structure
        "p", "br", "div",
        # headings
        "h1", "h2", "h3", "h4", "h5", "h6",
        # emphasis
        "strong", "b", "em", "i", "u", "s", "mark",
        # lists
        "ul", "ol", "li",
        "a",
        "code", "pre",
        "blockquote", "cite",
        # tables
        "table", "thead", "tbody", "tr", "td", "th",
        # inline
        "span", "small", "sub", "sup",
    }
)

ALLOWED_ATTRIBUTES = frozenset(
    {"style", "href", "target", "rel", "class", "id", "role", "colspan", "rowspan"}
)

LINK_ATTRIBUTES = frozenset({"href", "target", "rel"})

# Dropped together with everything inside them.
DROPPED_TAGS = frozenset(
    {
        "script", "style", "iframe", "frame", "frameset", "embed", "object",
        "applet", "noscript", "template", "svg", "math", "meta", "link", "base",
    }
)

SAFE_URL_SCHEMES = frozenset({"http", "https", "mailto", "tel"})

DANGEROUS_PATTERNS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"<iframe", re.IGNORECASE),
    re.compile(r"<embed", re.IGNORECASE),
    re.compile(r"<object", re.IGNORECASE),
    re.compile(r"document\.", re.IGNORECASE),
    re.compile(r"window\.", re.IGNORECASE),
    re.compile(r"eval\(", re.IGNORECASE),
    re.compile(r"setTimeout", re.IGNORECASE),
    re.compile(r"setInterval", re.IGNORECASE),
]

_HIDDEN_NODES = (Comment, CData, ProcessingInstruction, Declaration, Doctype)
_URL_SCHEME = re.compile(r"^([a-z][a-z0-9+.\-]*):")
_SCRIPT_URI = re.compile(r"(javascript|vbscript|data):")
_UNSAFE_STYLE = re.compile(r"expression\(|url\(|@import|behavior:|-moz-binding")
_EXTERNAL_LINK = re.compile(r"^\s*https?://", re.IGNORECASE)
_IGNORED_URL_CHARS = re.compile(r"[\s\x00-\x1f\x7f]+")


class RichText(NamedTuple):
    """Result of running author-supplied rich text through the pipeline.

    Attributes:
        html: markup that is safe to persist and render verbatim.
        altered: True when the output differs from the input.
        unsafe: True when the input tripped the deny-list and was replaced by plain text.
    """

    html: str
    altered: bool
    unsafe: bool


def parse_markup(html: str) -> BeautifulSoup:
    """Default markup parser: the pure-python html.parser backend."""
    return BeautifulSoup(html, "html.parser")


def _attribute_text(value: str | list[str]) -> str:
    if isinstance(value, list):
        return " ".join(value)
    return value


def _normalize(value: str) -> str:
    return _IGNORED_URL_CHARS.sub("", html_lib.unescape(value)).lower()


def _is_safe_url(value: str) -> bool:
    match = _URL_SCHEME.match(_normalize(value))
    return match is None or match.group(1) in SAFE_URL_SCHEMES


def _keep_attribute(name: str, value: str, allow_links: bool) -> bool:
    if name.startswith("on"):
        return False
    if name not in ALLOWED_ATTRIBUTES and not name.startswith("aria-"):
        return False
    if not allow_links and name in LINK_ATTRIBUTES:
        return False
    normalized = _normalize(value)
    if _SCRIPT_URI.search(normalized):
        return False
    if name == "href" and not _is_safe_url(value):
        return False
    if name == "style" and _UNSAFE_STYLE.search(normalized):
        return False
    return True


def _clean_attributes(tag: Tag, allow_links: bool) -> None:
    for name in list(tag.attrs):
        value = _attribute_text(tag.attrs[name])
        if not _keep_attribute(name.lower(), value, allow_links):
            del tag[name]

    if tag.name == "a" and _EXTERNAL_LINK.match(_attribute_text(tag.get("href", ""))):
        tag["target"] = "_blank"
        tag["rel"] = "noopener noreferrer"


def _clean(node: Tag, allowed_tags: frozenset[str], allow_links: bool) -> None:
    for child in list(node.children):
        if isinstance(child, _HIDDEN_NODES):
            child.extract()
        elif isinstance(child, Tag):
            name = child.name.lower()
            if name in DROPPED_TAGS:
                child.decompose()
                continue
            _clean(child, allowed_tags, allow_links)
            if name in allowed_tags:
                _clean_attributes(child, allow_links)
            else:
                child.unwrap()


def sanitize(
    html: str,
    parser: MarkupParser = parse_markup,
    allow_links: bool = True,
) -> str:
    """Strip unsafe markup from author-supplied HTML.

    Tags outside the allow-list are removed but their text is kept; executable
    containers (script, iframe, object...) are removed with their content.
    Event handlers, unknown attributes and non-http(s)/mailto/tel URLs are
    dropped, and external links are forced to open with rel="noopener noreferrer".
    Never raises; anything that is not a string sanitizes to "".

    :param html: markup to clean.
    :param parser: callable turning markup into a BeautifulSoup tree.
    :param allow_links: keep anchors and link attributes.
    :returns: sanitized markup. sanitize(sanitize(x)) == sanitize(x).
    """
    if not html or not isinstance(html, str):
        return ""

    soup = parser(html)
    allowed_tags = ALLOWED_TAGS if allow_links else ALLOWED_TAGS - {"a"}
    _clean(soup, allowed_tags, allow_links)
    return str(soup)


def sanitize_for_preview(html: str, parser: MarkupParser = parse_markup) -> str:
    """Stricter variant for previews: no anchors and no link attributes."""
    return sanitize(html, parser=parser, allow_links=False)


def is_safe(html: str) -> bool:
    """Check raw input against the deny-list of adversarial markers.

    A False result means the input should not be kept as markup at all.
    """
    if not html or not isinstance(html, str):
        return True
    return not any(pattern.search(html) for pattern in DANGEROUS_PATTERNS)


def extract_plain_text(html: str, parser: MarkupParser = parse_markup) -> str:
    """Text content of the sanitized markup, for counts and search indexing."""
    cleaned = sanitize(html, parser=parser)
    if not cleaned:
        return ""
    return parser(cleaned).get_text()


def plain_text_fallback(html: str, parser: MarkupParser = parse_markup) -> str:
    """Wrap the plain text of `html` in a single paragraph."""
    text = extract_plain_text(html, parser=parser).strip()
    return f"<p>{html_lib.escape(text, quote=False)}</p>"


def sanitize_rich_text(html: str, parser: MarkupParser = parse_markup) -> RichText:
    """Run editor input through the full pipeline.

    Input that fails `is_safe` is never kept as markup: it is replaced by the
    plain-text fallback. Everything else is sanitized.
    """
    if not html or not isinstance(html, str):
        return RichText(html="", altered=bool(html), unsafe=False)

    if not is_safe(html):
        fallback = plain_text_fallback(html, parser=parser)
        logger.warning(
            "Unsafe markup replaced with plain text (%d chars of input)", len(html)
        )
        return RichText(html=fallback, altered=True, unsafe=True)

    cleaned = sanitize(html, parser=parser)
    if cleaned != html:
        logger.info("Rich text altered by sanitization")
    return RichText(html=cleaned, altered=cleaned != html, unsafe=False)
