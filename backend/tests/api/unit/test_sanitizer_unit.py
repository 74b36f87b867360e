import pytest
from bs4 import BeautifulSoup

from lms_core.core.sanitizer import (
    extract_plain_text,
    is_safe,
    plain_text_fallback,
    sanitize,
    sanitize_for_preview,
    sanitize_rich_text,
)

SAMPLES = [
    "<p>Hello <strong>world</strong></p>",
    "<p>Hello <script>alert(1)</script>world</p>",
    '<a href="https://example.com">out</a>',
    '<a href="javascript:alert(1)">x</a>',
    '<p onclick="steal()" style="color: red" data-x="1">styled</p>',
    "<section><h2>Title</h2><ul><li>one</li><li>two</li></ul></section>",
    "<table><tr><td colspan=\"2\">cell</td></tr></table>",
    "<p>a<!-- hidden --></p><iframe src=\"https://example.com\"></iframe>",
    "plain text only",
    "",
]


def test_sanitize_removes_script_with_its_content() -> None:
    assert sanitize("<p>Hello <script>alert(1)</script>world</p>") == "<p>Hello world</p>"


def test_sanitize_script_output_is_free_of_script() -> None:
    html = "<script>alert(1)</script>"

    assert not is_safe(html)
    assert "<script" not in sanitize(html)


def test_sanitize_drops_event_handlers_and_unknown_attributes() -> None:
    result = sanitize('<p onclick="steal()" style="color: red" data-x="1" aria-label="l">t</p>')

    assert "onclick" not in result
    assert "data-x" not in result
    assert 'style="color: red"' in result
    assert 'aria-label="l"' in result


@pytest.mark.parametrize(
    "href",
    [
        "javascript:alert(1)",
        "JavaScript:alert(1)",
        " java\tscript:alert(1)",
        "data:text/html;base64,PHNjcmlwdD4=",
        "vbscript:msgbox(1)",
        "ftp://example.com/file",
    ],
)
def test_sanitize_drops_unsafe_hrefs(href: str) -> None:
    result = sanitize(f'<a href="{href}">x</a>')

    assert result == "<a>x</a>"


def test_sanitize_rewrites_external_links() -> None:
    result = sanitize('<a href="https://example.com">out</a>')

    assert 'href="https://example.com"' in result
    assert 'target="_blank"' in result
    assert 'rel="noopener noreferrer"' in result


def test_sanitize_keeps_mailto_links_as_they_are() -> None:
    assert sanitize('<a href="mailto:me@example.com">mail</a>') == (
        '<a href="mailto:me@example.com">mail</a>'
    )


def test_sanitize_unwraps_disallowed_tags_and_keeps_text() -> None:
    assert sanitize("<section><p>Keep</p> me</section>") == "<p>Keep</p> me"


def test_sanitize_removes_comments() -> None:
    assert sanitize("<p>a<!-- hidden --></p>") == "<p>a</p>"


@pytest.mark.parametrize("value", ["", None, 42])
def test_sanitize_never_raises_on_empty_or_non_string(value) -> None:
    assert sanitize(value) == ""


@pytest.mark.parametrize("html", SAMPLES)
def test_sanitize_is_idempotent(html: str) -> None:
    once = sanitize(html)

    assert sanitize(once) == once


def test_sanitize_uses_injected_parser() -> None:
    calls = []

    def parser(markup: str) -> BeautifulSoup:
        calls.append(markup)
        return BeautifulSoup(markup, "html.parser")

    assert sanitize("<p>x</p>", parser=parser) == "<p>x</p>"
    assert calls == ["<p>x</p>"]


def test_sanitize_for_preview_removes_links() -> None:
    assert sanitize_for_preview('<p><a href="https://example.com">link</a></p>') == "<p>link</p>"


@pytest.mark.parametrize(
    "html",
    [
        "<script>alert(1)</script>",
        '<img src="x" onerror="alert(1)">',
        '<a href="javascript:void(0)">x</a>',
        "<iframe src='https://example.com'></iframe>",
        "<embed src='movie.swf'>",
        "<object data='x'></object>",
        "<p>document.cookie</p>",
        "<p>window.location</p>",
        "<p>eval(code)</p>",
        "<p>setTimeout</p>",
        "<p>setInterval</p>",
    ],
)
def test_is_safe_flags_deny_listed_markers(html: str) -> None:
    assert is_safe(html) is False


def test_is_safe_accepts_ordinary_markup() -> None:
    assert is_safe("<p>Hello <em>class</em>, see <a href='https://example.com'>this</a></p>")


def test_extract_plain_text() -> None:
    assert extract_plain_text("<p>Hello <strong>world</strong></p>") == "Hello world"
    assert extract_plain_text("<p>Hi<script>alert(1)</script></p>") == "Hi"
    assert extract_plain_text("") == ""


def test_plain_text_fallback_wraps_escaped_text() -> None:
    assert plain_text_fallback("<b>Hi</b> & bye") == "<p>Hi &amp; bye</p>"


def test_sanitize_rich_text_replaces_unsafe_input_with_plain_text() -> None:
    result = sanitize_rich_text("<p>Hi</p><script>alert(1)</script>")

    assert result.unsafe is True
    assert result.altered is True
    assert result.html == "<p>Hi</p>"


def test_sanitize_rich_text_reports_alteration() -> None:
    result = sanitize_rich_text("<section>Hi</section>")

    assert result.unsafe is False
    assert result.altered is True
    assert result.html == "Hi"


def test_sanitize_rich_text_leaves_clean_markup_alone() -> None:
    result = sanitize_rich_text("<p>Hi <em>there</em></p>")

    assert result.html == "<p>Hi <em>there</em></p>"
    assert result.altered is False
    assert result.unsafe is False
