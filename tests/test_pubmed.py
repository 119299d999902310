"""Tests for the PubMed adapter: esearch/efetch requests and XML parsing."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest

from dossier.sources import pubmed

EFETCH_XML = """<?xml version="1.0"?>
<PubmedArticleSet>
  <PubmedArticle>
    <MedlineCitation>
      <PMID>31000001</PMID>
      <Article>
        <Journal>
          <JournalIssue><PubDate><Year>2021</Year></PubDate></JournalIssue>
          <Title>Journal of Strength Research</Title>
        </Journal>
        <ArticleTitle>Creatine and <i>muscle</i> strength</ArticleTitle>
        <Abstract>
          <AbstractText Label="BACKGROUND">Creatine is popular.</AbstractText>
          <AbstractText Label="RESULTS">Strength increased by 8%.</AbstractText>
        </Abstract>
        <AuthorList>
          <Author><LastName>Smith</LastName><ForeName>Jane</ForeName></Author>
          <Author><LastName>Doe</LastName><Initials>J</Initials></Author>
          <Author><CollectiveName>Creatine Study Group</CollectiveName></Author>
        </AuthorList>
      </Article>
    </MedlineCitation>
    <PubmedData>
      <ArticleIdList>
        <ArticleId IdType="pubmed">31000001</ArticleId>
        <ArticleId IdType="doi">10.1000/CRE.2021</ArticleId>
        <ArticleId IdType="pmc">PMC7654321</ArticleId>
      </ArticleIdList>
    </PubmedData>
  </PubmedArticle>
  <PubmedArticle>
    <MedlineCitation>
      <PMID>31000002</PMID>
      <Article>
        <Journal>
          <JournalIssue><PubDate><MedlineDate>2019 Jan-Feb</MedlineDate></PubDate></JournalIssue>
        </Journal>
        <ArticleTitle>Unstructured abstract</ArticleTitle>
        <Abstract><AbstractText>Plain text.</AbstractText></Abstract>
      </Article>
    </MedlineCitation>
  </PubmedArticle>
  <PubmedArticle>
    <MedlineCitation><Article><ArticleTitle>No PMID</ArticleTitle></Article></MedlineCitation>
  </PubmedArticle>
</PubmedArticleSet>
"""


def _response(status_code: int = 200, *, json=None, text: str | None = None) -> httpx.Response:
    request = httpx.Request("GET", pubmed.PUBMED_BASE_URL)
    if json is not None:
        return httpx.Response(status_code, json=json, request=request)
    return httpx.Response(status_code, text=text or "", request=request)


class TestParsePubmedXml:
    def test_parses_full_article(self):
        records = pubmed.parse_pubmed_xml(EFETCH_XML)
        assert len(records) == 2
        record = records[0]
        assert record.pmid == "31000001"
        assert record.title == "Creatine and muscle strength"
        assert record.abstract == "BACKGROUND: Creatine is popular.\nRESULTS: Strength increased by 8%."
        assert record.authors == ["Smith Jane", "Doe J", "Creatine Study Group"]
        assert record.journal == "Journal of Strength Research"
        assert record.published_year == 2021
        assert record.doi == "10.1000/CRE.2021"
        assert record.pmcid == "PMC7654321"
        assert record.full_text_url == "https://www.ncbi.nlm.nih.gov/pmc/articles/PMC7654321/"

    def test_medline_date_and_unlabelled_abstract(self):
        record = pubmed.parse_pubmed_xml(EFETCH_XML)[1]
        assert record.published_year == 2019
        assert record.abstract == "Plain text."
        assert record.pmcid is None
        assert record.full_text_url is None

    def test_to_unified_normalizes_doi(self):
        paper = pubmed.to_unified(pubmed.parse_pubmed_xml(EFETCH_XML)[0])
        assert paper.doi == "10.1000/cre.2021"
        assert paper.pmid == "31000001"
        assert paper.sources == ["pubmed"]


class TestNormalizePmcid:
    @pytest.mark.parametrize(("raw", "expected"), [("123", "PMC123"), ("PMC123", "PMC123"), ("pmc9", "PMC9")])
    def test_normalizes(self, raw, expected):
        assert pubmed.normalize_pmcid(raw) == expected

    def test_blank_is_none(self):
        assert pubmed.normalize_pmcid("  ") is None
        assert pubmed.normalize_pmcid(None) is None


class TestSearch:
    async def test_esearch_then_efetch(self):
        client = AsyncMock()
        client.get.side_effect = [
            _response(json={"esearchresult": {"idlist": ["31000001", "31000002"]}}),
            _response(text=EFETCH_XML),
        ]
        records = await pubmed.search(client, "creatine strength", max_results=5, api_key="ncbi-key")

        assert [r.pmid for r in records] == ["31000001", "31000002"]
        esearch_call, efetch_call = client.get.call_args_list
        assert esearch_call.args[0].endswith("/esearch.fcgi")
        assert esearch_call.kwargs["params"]["term"] == "creatine strength"
        assert esearch_call.kwargs["params"]["retmax"] == "5"
        assert esearch_call.kwargs["params"]["api_key"] == "ncbi-key"
        assert efetch_call.kwargs["params"]["id"] == "31000001,31000002"

    async def test_no_ids_skips_efetch(self):
        client = AsyncMock()
        client.get.return_value = _response(json={"esearchresult": {"idlist": []}})
        assert await pubmed.search(client, "nothing") == []
        assert client.get.call_count == 1

    async def test_omits_api_key_when_unset(self):
        client = AsyncMock()
        client.get.return_value = _response(json={"esearchresult": {"idlist": []}})
        await pubmed.search(client, "q")
        assert "api_key" not in client.get.call_args.kwargs["params"]

    async def test_http_error_raises(self):
        client = AsyncMock()
        client.get.return_value = _response(500, text="oops")
        with pytest.raises(httpx.HTTPStatusError):
            await pubmed.search(client, "q")
