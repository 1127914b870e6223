"""HTML rewriting for message bodies: image URL resolution and the mail template."""

from __future__ import annotations

import html
import re
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup

from ..models import Link

logger = structlog.get_logger()

STYLESHEET = """
body {
    font-family: -apple-system, "Segoe UI", Helvetica, Arial, sans-serif;
    font-size: 16px;
    line-height: 1.5;
    color: #222;
    max-width: 48em;
    margin: 0 auto;
    padding: 1em;
}
img, video {
    max-width: 100%;
    height: auto;
}
pre, code {
    font-family: Menlo, Consolas, monospace;
    font-size: 0.9em;
    background: #f4f4f4;
}
pre {
    padding: 0.5em;
    overflow-x: auto;
}
blockquote {
    margin-left: 0;
    padding-left: 1em;
    border-left: 3px solid #ccc;
    color: #555;
}
#links {
    margin-top: 2em;
    border-top: 1px solid #ddd;
    font-size: 0.9em;
}
"""

TEMPLATE = """<html>
    <head>
        <meta http-equiv="Content-Type" content="text/html; charset=utf-8">
        <style>{style}</style>
    </head>
    <body>
        <div id="entry">
{content}
        </div>
        <div id="links">
            <h4>Links</h4>
            <ul>
                <li><a href="{link_href}">{link_title}</a></li>
            </ul>
        </div>
    </body>
</html>
"""


# Entities that survived one round of decoding; only the terminated form
# counts, so query strings like ``&copy=2`` stay as they are.
_LEFTOVER_ENTITY = re.compile(r"&(#\d+|#x[0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);")


def _decode_leftover_entities(value: str) -> str:
    return _LEFTOVER_ENTITY.sub(lambda m: html.unescape(m[0]), value)


def rewrite_relative_links(base_url: str, content: str) -> str:
    """Resolve every ``<img src>`` of *content* against *base_url*.

    The parser decodes the attribute once; entities left over from a
    double-escaping feed are decoded again, semicolon-terminated ones
    only.  Absolute URLs come out unchanged.  A URL that cannot be
    resolved is logged and left as it was.

    When at least one image is present the fragment is re-serialized by
    BeautifulSoup, so void tags come out as ``<br/>`` and attribute
    quoting is normalized.
    """
    soup = BeautifulSoup(content, "html.parser")
    images = soup.find_all("img", src=True)
    if not images:
        return content

    for img in images:
        src = _decode_leftover_entities(img["src"])
        try:
            img["src"] = urljoin(base_url, src)
        except ValueError as exc:
            logger.error("img_src_unresolvable", src=src, base_url=base_url, error=str(exc))
    return str(soup)


def wrap_in_template(content: str, article_link: Link | None) -> str:
    """Embed *content* in a standalone HTML page followed by a Links section."""
    link_href = article_link.href if article_link is not None else "none"
    link_title = (article_link.title if article_link is not None else None) or link_href
    return TEMPLATE.format(
        style=STYLESHEET,
        content=content,
        link_href=html.escape(link_href, quote=True),
        link_title=html.escape(link_title, quote=False),
    )
