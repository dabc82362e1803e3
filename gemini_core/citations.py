# =============================================================================
# gemini_core/citations.py  —  Grounding Citations & Source Extraction
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Two small text utilities that sit on either side of a grounded call:
#
#   1. add_inline_citations()  (runs inside the backend adapter)
#      Appends a "Sources:" line built from the grounding metadata, plus a
#      "Search queries used:" line, to the model's answer.
#
#   2. extract_sources()  (runs inside the research orchestrator)
#      Pulls every URL back out of free-form response text, so the final
#      report can list what each iteration cited.
#
# HOW SUPPORTS MAP TO CHUNKS:
#   Grounding metadata carries a list of chunks (web pages) and a list of
#   supports (answer spans).  Each support names the chunk indices that back
#   it.  Only chunks that at least one support references are cited; an
#   index past the end of the chunk list, or a chunk without a URI, is
#   skipped without complaint.
# =============================================================================

import logging
import re
from typing import Iterable

from gemini_core.models import GroundingMetadata

logger = logging.getLogger(__name__)

# Scheme followed by anything that is not whitespace or a closing paren.
# Citations are rendered as "(url)", so the paren terminates the match.
_URL_PATTERN = re.compile(r"https?://[^\s)]+")
_TRAILING_PUNCTUATION = ".,;:"
_MIN_URL_LENGTH = 11


def _dedupe(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


def cited_urls(grounding: GroundingMetadata) -> list[str]:
    """Resolve support → chunk references into unique URIs, in support order."""
    chunks = grounding.grounding_chunks
    urls = []
    used = set()
    for support in grounding.grounding_supports:
        for index in support.grounding_chunk_indices:
            if index < 0 or index >= len(chunks) or index in used:
                continue
            uri = chunks[index].uri
            if uri:
                urls.append(uri)
                used.add(index)
    return _dedupe(urls)


def add_inline_citations(text: str, grounding: GroundingMetadata) -> str:
    """Append the cited sources and search queries to ``text``."""
    supports = grounding.grounding_supports
    chunks = grounding.grounding_chunks
    queries = grounding.web_search_queries

    logger.debug(
        "Grounding metadata: supports=%d chunks=%d queries=%d",
        len(supports), len(chunks), len(queries),
    )

    search_info = f"\n\nSearch queries used: {', '.join(queries)}" if queries else ""

    if not supports or not chunks:
        # Queries alone are still worth showing; otherwise pass through.
        if search_info and not supports and not chunks:
            return text + search_info
        logger.debug("No supports or chunks found - skipping citations")
        return text

    processed = text
    links = cited_urls(grounding)
    if links:
        processed += "\n\nSources: " + " ".join(f"({url})" for url in links)

    return processed + search_info


def extract_sources(text: str) -> list[str]:
    """Return the unique URLs found in ``text``, in first-seen order.

    Trailing sentence punctuation is stripped and anything shorter than
    11 characters is discarded.  "https://a.com" and "https://a.com/" are
    kept as two different sources.
    """
    found = []
    for match in _URL_PATTERN.findall(text):
        url = match.rstrip(_TRAILING_PUNCTUATION)
        if len(url) >= _MIN_URL_LENGTH:
            found.append(url)
    return _dedupe(found)
