"""PubMed search adapter (NCBI E-utilities).

Two requests per search: ``esearch`` (JSON) for matching PMIDs, then ``efetch``
(XML) for article metadata. ``NCBI_API_KEY`` is optional and raises the rate
limit when set.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET

import httpx

from dossier.schemas.paper import UnifiedPaper
from dossier.schemas.sources import PubMedRecord

logger = logging.getLogger(__name__)

SOURCE_NAME = "pubmed"

PUBMED_BASE_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
PMC_ARTICLE_URL = "https://www.ncbi.nlm.nih.gov/pmc/articles/{pmcid}/"

_YEAR_RE = re.compile(r"\d{4}")


def normalize_pmcid(value: str | None) -> str | None:
    """Return a PMC id in ``PMC123`` form, accepting bare digits."""
    if not value or not str(value).strip():
        return None
    value = str(value).strip().upper()
    return value if value.startswith("PMC") else f"PMC{value}"


def pmc_full_text_url(pmcid: str) -> str:
    return PMC_ARTICLE_URL.format(pmcid=normalize_pmcid(pmcid))


def _params(api_key: str | None, **params: str) -> dict[str, str]:
    if api_key:
        params["api_key"] = api_key
    return params


async def search_ids(
    client: httpx.AsyncClient,
    query: str,
    max_results: int = 20,
    api_key: str | None = None,
) -> list[str]:
    """Run esearch and return matching PMIDs (relevance order)."""
    response = await client.get(
        f"{PUBMED_BASE_URL}/esearch.fcgi",
        params=_params(
            api_key,
            db="pubmed",
            term=query,
            retmax=str(max_results),
            retstart="0",
            retmode="json",
        ),
    )
    response.raise_for_status()
    data = response.json()
    try:
        return list(data["esearchresult"].get("idlist") or [])
    except (KeyError, AttributeError):
        logger.warning("Unexpected PubMed esearch response structure: %s", data)
        return []


async def fetch_articles(
    client: httpx.AsyncClient,
    pmids: list[str],
    api_key: str | None = None,
) -> list[PubMedRecord]:
    """Run efetch for the given PMIDs and parse the XML."""
    if not pmids:
        return []
    response = await client.get(
        f"{PUBMED_BASE_URL}/efetch.fcgi",
        params=_params(api_key, db="pubmed", id=",".join(pmids), retmode="xml"),
    )
    response.raise_for_status()
    return parse_pubmed_xml(response.text)


async def search(
    client: httpx.AsyncClient,
    query: str,
    max_results: int = 20,
    api_key: str | None = None,
) -> list[PubMedRecord]:
    """Search PubMed and return parsed article records."""
    pmids = await search_ids(client, query, max_results=max_results, api_key=api_key)
    logger.info("PubMed esearch: query=%r ids=%d", query, len(pmids))
    return await fetch_articles(client, pmids, api_key=api_key)


# ── XML parsing ─────────────────────────────────────────────────────────


def _text(node: ET.Element | None) -> str:
    """Full text content of a node, including inline markup such as <i>."""
    if node is None:
        return ""
    return "".join(node.itertext()).strip()


def _parse_abstract(article: ET.Element) -> str | None:
    sections: list[str] = []
    for node in article.findall("MedlineCitation/Article/Abstract/AbstractText"):
        text = _text(node)
        if not text:
            continue
        label = node.attrib.get("Label")
        sections.append(f"{label}: {text}" if label else text)
    return "\n".join(sections) or None


def _parse_authors(article: ET.Element) -> list[str]:
    authors: list[str] = []
    for node in article.findall("MedlineCitation/Article/AuthorList/Author"):
        collective = _text(node.find("CollectiveName"))
        if collective:
            authors.append(collective)
            continue
        last = _text(node.find("LastName"))
        fore = _text(node.find("ForeName")) or _text(node.find("Initials"))
        name = f"{last} {fore}".strip()
        if name:
            authors.append(name)
    return authors


def _parse_year(article: ET.Element) -> int | None:
    pub_date = article.find("MedlineCitation/Article/Journal/JournalIssue/PubDate")
    if pub_date is None:
        return None
    year = _text(pub_date.find("Year"))
    if year.isdigit():
        return int(year)
    # MedlineDate is free-form, e.g. "2020 Jan-Feb"
    match = _YEAR_RE.search(_text(pub_date.find("MedlineDate")))
    return int(match.group(0)) if match else None


def _article_id(article: ET.Element, id_type: str) -> str | None:
    for node in article.findall("PubmedData/ArticleIdList/ArticleId"):
        if node.attrib.get("IdType") == id_type:
            value = _text(node)
            return value or None
    return None


def _parse_article(article: ET.Element) -> PubMedRecord | None:
    pmid = _text(article.find("MedlineCitation/PMID"))
    if not pmid:
        return None
    pmcid = normalize_pmcid(_article_id(article, "pmc"))
    return PubMedRecord(
        pmid=pmid,
        pmcid=pmcid,
        doi=_article_id(article, "doi"),
        title=_text(article.find("MedlineCitation/Article/ArticleTitle")),
        abstract=_parse_abstract(article),
        authors=_parse_authors(article),
        journal=_text(article.find("MedlineCitation/Article/Journal/Title")) or None,
        published_year=_parse_year(article),
        full_text_url=pmc_full_text_url(pmcid) if pmcid else None,
    )


def parse_pubmed_xml(xml_text: str) -> list[PubMedRecord]:
    """Parse a PubmedArticleSet document into records. Articles without a PMID are skipped."""
    root = ET.fromstring(xml_text)
    records: list[PubMedRecord] = []
    for article in root.findall("PubmedArticle"):
        record = _parse_article(article)
        if record is not None:
            records.append(record)
    return records


# ── Conversion ──────────────────────────────────────────────────────────


def to_unified(record: PubMedRecord) -> UnifiedPaper:
    return UnifiedPaper(
        title=record.title,
        abstract=record.abstract,
        doi=record.doi,
        pmid=record.pmid,
        pmcid=record.pmcid,
        authors=list(record.authors),
        journal=record.journal,
        published_year=record.published_year,
        full_text_url=record.full_text_url,
        sources=[SOURCE_NAME],
    )
