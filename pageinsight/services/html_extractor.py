import codecs
import logging
from html.parser import HTMLParser
from types import MappingProxyType
from typing import Iterable, List, Optional
from urllib.parse import SplitResult, urljoin, urlsplit

from bs4.dammit import EncodingDetector

from pageinsight.domain.deadline import Deadline
from pageinsight.domain.link import Link
from pageinsight.domain.parsed_page import HEADING_TAGS, ParsedPage, empty_heading_counts
from pageinsight.exceptions import ContextDoneError, HtmlStreamError

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf-8"
LINK_SCHEMES = ("http", "https")

# Checked in order; the first substring found in the doctype wins.
# https://www.w3.org/QA/2002/04/valid-dtd-list.html
_DOCTYPE_VERSIONS = (
    (("xhtml 1.1", "xhtml basic 1.1"), "XHTML 1.1"),
    (("xhtml 1.0",), "XHTML 1.0"),
    (("html 4.01",), "HTML 4.01"),
)


def detect_html_version(doctype: str) -> str:
    """Map the text of a <!DOCTYPE ...> declaration to an HTML version label."""
    data = doctype.lower()
    if data.startswith("doctype"):
        data = data[len("doctype"):]
    if "public" not in data:
        return "HTML5"
    for needles, version in _DOCTYPE_VERSIONS:
        if any(needle in data for needle in needles):
            return version
    return "Unknown"


def _host(parts: SplitResult) -> str:
    return parts.netloc.rpartition("@")[2].lower()


class _PageParser(HTMLParser):
    def __init__(self, base_url: str):
        super().__init__(convert_charrefs=True)
        self._base_url = base_url
        self._base_host = _host(urlsplit(base_url))
        self.html_version = "Unknown"
        self.title: Optional[str] = None
        self.headings = empty_heading_counts()
        self.links: List[Link] = []
        self.has_login_form = False
        self._title_parts: Optional[List[str]] = None

    def handle_decl(self, decl):
        if decl.lower().startswith("doctype"):
            self.html_version = detect_html_version(decl)

    def handle_starttag(self, tag, attrs):
        self._finish_title()
        if tag == "title":
            if self.title is None:
                self._title_parts = []
        elif tag in HEADING_TAGS:
            self.headings[tag] += 1
        elif tag == "a":
            href = _first_attr(attrs, "href")
            if href:
                link = self._classify(href)
                if link is not None:
                    self.links.append(link)
        elif tag == "input":
            if (_first_attr(attrs, "type") or "").lower() == "password":
                self.has_login_form = True

    def handle_endtag(self, tag):
        self._finish_title()

    def handle_data(self, data):
        if self._title_parts is not None:
            self._title_parts.append(data)

    def close(self):
        super().close()
        self._finish_title()

    def _finish_title(self):
        # Only the text directly inside the first <title> counts.
        if self._title_parts is not None:
            self.title = "".join(self._title_parts).strip()
            self._title_parts = None

    def _classify(self, href: str) -> Optional[Link]:
        href = href.strip()
        if not href:
            return None
        try:
            resolved = urljoin(self._base_url, href)
            parts = urlsplit(resolved)
        except ValueError:
            logger.debug("Skipping unparsable href %r", href)
            return None
        if parts.scheme not in LINK_SCHEMES:
            return None
        return Link(url=resolved, is_internal=_host(parts) == self._base_host)

    def result(self) -> ParsedPage:
        return ParsedPage(
            html_version=self.html_version,
            title=self.title or "",
            headings=MappingProxyType(dict(self.headings)),
            links=tuple(self.links),
            has_login_form=self.has_login_form,
        )


def _first_attr(attrs, name: str) -> Optional[str]:
    for key, value in attrs:
        if key == name:
            return value
    return None


class HtmlExtractor:
    """Single forward pass over a streamed HTML body.

    Chunks are decoded incrementally and fed to the parser as they arrive, so
    the document is never held in memory as a whole. Charset resolution
    order: byte-order mark, `encoding` (from the Content-Type header), a
    <meta> declaration in the first chunk, then UTF-8.
    """

    def extract(
        self,
        chunks: Iterable[bytes],
        base_url: str,
        encoding: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> ParsedPage:
        parser = _PageParser(base_url)
        decoder = None
        iterator = iter(chunks)
        while True:
            if deadline is not None:
                deadline.check()
            try:
                chunk = next(iterator)
            except StopIteration:
                break
            except ContextDoneError:
                raise
            except Exception as e:
                raise HtmlStreamError(e) from e
            if not chunk:
                continue
            if decoder is None:
                chunk, charset = self._pick_encoding(chunk, encoding)
                decoder = codecs.getincrementaldecoder(charset)(errors="replace")
            parser.feed(decoder.decode(chunk))

        if decoder is not None:
            parser.feed(decoder.decode(b"", final=True))
        parser.close()
        return parser.result()

    def _pick_encoding(self, first_chunk: bytes, declared: Optional[str]):
        first_chunk, bom_encoding = EncodingDetector.strip_byte_order_mark(first_chunk)
        for candidate in (
            bom_encoding,
            declared,
            EncodingDetector.find_declared_encoding(first_chunk, is_html=True),
        ):
            if not candidate:
                continue
            try:
                return first_chunk, codecs.lookup(candidate).name
            except LookupError:
                logger.debug("Ignoring unknown charset %r", candidate)
        return first_chunk, DEFAULT_ENCODING
