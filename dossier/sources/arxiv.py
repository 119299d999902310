"""arXiv search adapter (Atom API), restricted to health-related categories."""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET

import httpx

from dossier.schemas.paper import UnifiedPaper
from dossier.schemas.sources import ArxivRecord

logger = logging.getLogger(__name__)

SOURCE_NAME = "arxiv"

ARXIV_API_URL = "http://export.arxiv.org/api/query"

HEALTH_CATEGORIES = (
    "q-bio.QM",  # Quantitative Methods
    "q-bio.TO",  # Tissues and Organs
    "q-bio.NC",  # Neurons and Cognition
    "physics.med-ph",  # Medical Physics
    "stat.AP",  # Statistics Applications
    "cs.LG",  # Machine Learning (health AI papers)
)

_NS = {
    "atom": "http://www.w3.org/2005/Atom",
    "arxiv": "http://arxiv.org/schemas/atom",
}
_ABS_PREFIX_RE = re.compile(r"^https?://arxiv\.org/abs/")
_VERSION_RE = re.compile(r"v\d+$")
_WHITESPACE_RE = re.compile(r"\s+")


def build_search_query(query: str, categories: tuple[str, ...] = HEALTH_CATEGORIES) -> str:
    search_query = f"all:{query}"
    if categories:
        category_filter = " OR ".join(f"cat:{cat}" for cat in categories)
        search_query = f"({search_query}) AND ({category_filter})"
    return search_query


async def search(
    client: httpx.AsyncClient,
    query: str,
    max_results: int = 20,
    categories: tuple[str, ...] = HEALTH_CATEGORIES,
) -> list[ArxivRecord]:
    """Search arXiv sorted by relevance."""
    response = await client.get(
        ARXIV_API_URL,
        params={
            "search_query": build_search_query(query, categories),
            "start": "0",
            "max_results": str(max_results),
            "sortBy": "relevance",
            "sortOrder": "descending",
        },
    )
    response.raise_for_status()
    records = parse_arxiv_feed(response.text)
    logger.info("arXiv search: query=%r results=%d", query, len(records))
    return records


def _collapse(text: str | None) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def _parse_entry(entry: ET.Element) -> ArxivRecord | None:
    raw_id = (entry.findtext("atom:id", default="", namespaces=_NS) or "").strip()
    arxiv_id = _ABS_PREFIX_RE.sub("", raw_id)
    if not arxiv_id or arxiv_id == raw_id:
        return None

    published = (entry.findtext("atom:published", default="", namespaces=_NS) or "").strip()
    year = int(published[:4]) if published[:4].isdigit() else None
    authors = [
        _collapse(name.text)
        for name in entry.findall("atom:author/atom:name", _NS)
        if name.text and name.text.strip()
    ]
    categories = [
        node.attrib["term"] for node in entry.findall("atom:category", _NS) if node.attrib.get("term")
    ]
    doi = (entry.findtext("arxiv:doi", default="", namespaces=_NS) or "").strip() or None

    return ArxivRecord(
        arxiv_id=arxiv_id,
        title=_collapse(entry.findtext("atom:title", default="", namespaces=_NS)),
        abstract=_collapse(entry.findtext("atom:summary", default="", namespaces=_NS)),
        authors=authors,
        published_date=published,
        published_year=year,
        pdf_url=f"https://arxiv.org/pdf/{arxiv_id}.pdf",
        categories=categories,
        doi=doi,
    )


def parse_arxiv_feed(xml_text: str) -> list[ArxivRecord]:
    """Parse an arXiv Atom feed. Entries without an abs/ id are skipped."""
    root = ET.fromstring(xml_text)
    records: list[ArxivRecord] = []
    for entry in root.findall("atom:entry", _NS):
        record = _parse_entry(entry)
        if record is not None:
            records.append(record)
    return records


def strip_version(arxiv_id: str) -> str:
    """``2301.00001v2`` -> ``2301.00001``."""
    return _VERSION_RE.sub("", arxiv_id)


def to_unified(record: ArxivRecord) -> UnifiedPaper:
    return UnifiedPaper(
        title=record.title,
        abstract=record.abstract or None,
        doi=record.doi,
        arxiv_id=strip_version(record.arxiv_id),
        authors=list(record.authors),
        published_year=record.published_year,
        full_text_url=record.pdf_url or None,
        sources=[SOURCE_NAME],
    )
