"""
Content filters.

Reduce a page's HTML to its main content before markdown rendering. Filters
are pure functions of the HTML; they never touch the browser.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from rank_bm25 import BM25Okapi

logger = logging.getLogger(__name__)


EXCLUDED_TAGS = frozenset({
    "nav", "footer", "header", "aside", "script", "style",
    "form", "iframe", "noscript",
})

TAG_WEIGHTS = {
    "div": 0.5,
    "p": 1.0,
    "article": 1.5,
    "section": 1.0,
    "span": 0.3,
    "li": 0.5,
    "ul": 0.5,
    "ol": 0.5,
    "h1": 1.2,
    "h2": 1.1,
    "h3": 1.0,
    "h4": 0.9,
    "h5": 0.8,
    "h6": 0.7,
}


def _parse(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def _serialize_body(soup: BeautifulSoup) -> str:
    if soup.body is not None:
        return "".join(str(child) for child in soup.body.children)
    return str(soup)


@dataclass
class PruningContentFilter:
    """
    Removes low-value DOM subtrees.

    Every element is scored on text density, link density, tag weight and
    (log) text length; elements scoring below ``threshold`` are dropped,
    the rest are pruned recursively.
    """

    threshold: float = 0.48
    min_word_threshold: Optional[int] = None
    excluded_tags: frozenset = EXCLUDED_TAGS
    tag_weights: dict = field(default_factory=lambda: dict(TAG_WEIGHTS))

    # Score component weights
    W_TEXT_DENSITY = 0.4
    W_LINK_DENSITY = 0.2
    W_TAG_WEIGHT = 0.2
    W_TEXT_LENGTH = 0.1

    def filter_content(self, html: str) -> str:
        """Return the pruned body HTML."""
        soup = _parse(html)

        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()

        for tag in soup.find_all(list(self.excluded_tags)):
            tag.decompose()

        root = soup.body if soup.body is not None else soup
        self._prune(root)

        return _serialize_body(soup)

    def _prune(self, node: Tag) -> None:
        for child in list(node.children):
            if not isinstance(child, Tag):
                continue

            text = child.get_text()
            text_len = len(text.strip())
            tag_len = len(str(child))
            link_text_len = self._link_text_len(child)

            if self.min_word_threshold is not None and len(text.split()) < self.min_word_threshold:
                child.decompose()
                continue

            score = self.compute_score(child.name, text_len, tag_len, link_text_len)
            if score < self.threshold:
                child.decompose()
            else:
                self._prune(child)

    @staticmethod
    def _link_text_len(node: Tag) -> int:
        anchors = node.find_all("a")
        if node.name == "a":
            anchors.append(node)
        return sum(len(a.get_text().strip()) for a in anchors)

    def compute_score(self, tag_name: str, text_len: int, tag_len: int, link_text_len: int) -> float:
        """Weighted average of the four content signals."""
        density = text_len / tag_len if tag_len > 0 else 0.0
        link_density = 1.0 - (link_text_len / text_len) if text_len > 0 else 0.0
        tag_score = self.tag_weights.get(tag_name, 0.5)
        length_score = math.log(text_len + 1)

        score = (
            self.W_TEXT_DENSITY * density
            + self.W_LINK_DENSITY * link_density
            + self.W_TAG_WEIGHT * tag_score
            + self.W_TEXT_LENGTH * length_score
        )
        total_weight = (
            self.W_TEXT_DENSITY + self.W_LINK_DENSITY + self.W_TAG_WEIGHT + self.W_TEXT_LENGTH
        )
        return score / total_weight


INLINE_TAGS = frozenset({
    "a", "abbr", "acronym", "b", "bdo", "big", "br", "button", "cite", "code",
    "dfn", "em", "i", "img", "input", "kbd", "label", "map", "object", "q",
    "samp", "script", "select", "small", "span", "strong", "sub", "sup",
    "textarea", "time", "tt", "var",
})

HEADER_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6", "header"})

# Multipliers applied to a chunk's BM25 score by the tag that closed it
PRIORITY_TAGS = {
    "h1": 5.0, "h2": 4.0, "h3": 3.0, "title": 4.0,
    "strong": 2.0, "b": 1.5, "em": 1.5, "blockquote": 2.0,
    "code": 2.0, "pre": 1.5, "th": 1.5,
}

_TOKEN_SPLIT = re.compile(r"[^\w]+", re.UNICODE)


@dataclass
class TextChunk:
    """A run of text closed by a block-level element."""
    index: int
    text: str
    tag_type: str
    tag_name: str
    node: Tag


@dataclass
class BM25ContentFilter:
    """
    Keeps block-level chunks relevant to a query.

    Without ``user_query`` the query is derived from the page's title, first
    h1 and meta description/keywords.
    """

    user_query: Optional[str] = None
    bm25_threshold: float = 1.0
    min_word_threshold: Optional[int] = None
    k1: float = 1.5
    b: float = 0.75

    def filter_content(self, html: str) -> str:
        soup = _parse(html)
        body = soup.body if soup.body is not None else soup

        query = self.user_query or self.extract_page_query(soup, body)
        if not query.strip():
            return ""

        chunks = self.extract_text_chunks(body)
        if not chunks:
            return ""

        corpus = [tokenize(chunk.text) for chunk in chunks]
        scores = bm25_scores(corpus, tokenize(query), k1=self.k1, b=self.b)

        kept = [
            chunk for chunk, score in zip(chunks, scores)
            if score * PRIORITY_TAGS.get(chunk.tag_name, 1.0) >= self.bm25_threshold
        ]
        logger.debug(f"BM25 kept {len(kept)}/{len(chunks)} chunks for query {query!r}")
        return "".join(str(chunk.node) for chunk in kept)

    @staticmethod
    def extract_page_query(soup: BeautifulSoup, body: Tag) -> str:
        parts = []
        if soup.title is not None and soup.title.get_text(strip=True):
            parts.append(soup.title.get_text(strip=True))

        h1 = soup.find("h1")
        if h1 is not None:
            parts.append(h1.get_text(strip=True))

        for meta in soup.find_all("meta"):
            if meta.get("name") in ("description", "keywords") and meta.get("content"):
                parts.append(meta["content"])

        if not parts:
            for p in body.find_all("p"):
                text = p.get_text()
                if len(text) > 150:
                    parts.append(text[:150])
                    break

        return " ".join(parts)

    def extract_text_chunks(self, body: Tag) -> list[TextChunk]:
        chunks: list[TextChunk] = []
        current: list[str] = []

        def flush(node: Tag) -> None:
            text = " ".join(current).strip()
            if text:
                tag_type = "header" if node.name in HEADER_TAGS else "content"
                chunks.append(TextChunk(len(chunks), text, tag_type, node.name, node))
            current.clear()

        def close(node: Tag) -> None:
            if node.name in INLINE_TAGS:
                return
            if node.name == "p" and not current:
                return
            flush(node)

        def walk(node: Tag) -> None:
            for child in node.children:
                if isinstance(child, Comment):
                    continue
                if isinstance(child, NavigableString):
                    if child.parent is not None and child.parent.name in ("script", "style", "noscript"):
                        continue
                    text = child.strip()
                    if text:
                        current.append(text)
                elif isinstance(child, Tag):
                    walk(child)
                    close(child)

        walk(body)
        if current:
            flush(body)

        if self.min_word_threshold is not None:
            chunks = [c for c in chunks if len(c.text.split()) >= self.min_word_threshold]

        return chunks


def tokenize(text: str) -> list[str]:
    return [token for token in _TOKEN_SPLIT.split(text.lower()) if token and token != "_"]


def bm25_scores(corpus: list[list[str]], query: list[str], k1: float = 1.5, b: float = 0.75) -> list[float]:
    """Okapi BM25 score of every document in ``corpus`` against ``query``."""
    # BM25Okapi divides by the vocabulary size
    if not any(corpus):
        return [0.0] * len(corpus)
    return BM25Okapi(corpus, k1=k1, b=b).get_scores(query).tolist()
