"""Tests for the arXiv adapter."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx

from dossier.sources import arxiv

ATOM_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:arxiv="http://arxiv.org/schemas/atom">
  <entry>
    <id>http://arxiv.org/abs/2401.01234v2</id>
    <published>2024-01-05T18:00:00Z</published>
    <title>Wearable   data and
      sleep quality</title>
    <summary>  We study sleep
      with wearables.  </summary>
    <author><name>Ada Lovelace</name></author>
    <author><name>Alan Turing</name></author>
    <arxiv:doi>10.48550/ARXIV.2401.01234</arxiv:doi>
    <category term="q-bio.QM"/>
    <category term="cs.LG"/>
  </entry>
  <entry>
    <id>urn:not-an-arxiv-id</id>
    <title>Broken</title>
  </entry>
</feed>
"""


class TestBuildSearchQuery:
    def test_restricts_to_health_categories(self):
        query = arxiv.build_search_query("sleep")
        assert query.startswith("(all:sleep) AND (cat:q-bio.QM OR ")
        assert "cat:physics.med-ph" in query
        assert query.endswith("cat:cs.LG)")

    def test_no_categories(self):
        assert arxiv.build_search_query("sleep", ()) == "all:sleep"


class TestParseArxivFeed:
    def test_parses_entry_and_skips_invalid(self):
        records = arxiv.parse_arxiv_feed(ATOM_FEED)
        assert len(records) == 1
        record = records[0]
        assert record.arxiv_id == "2401.01234v2"
        assert record.title == "Wearable data and sleep quality"
        assert record.abstract == "We study sleep with wearables."
        assert record.authors == ["Ada Lovelace", "Alan Turing"]
        assert record.published_year == 2024
        assert record.categories == ["q-bio.QM", "cs.LG"]
        assert record.pdf_url == "https://arxiv.org/pdf/2401.01234v2.pdf"
        assert record.doi == "10.48550/ARXIV.2401.01234"

    def test_to_unified_strips_version(self):
        paper = arxiv.to_unified(arxiv.parse_arxiv_feed(ATOM_FEED)[0])
        assert paper.arxiv_id == "2401.01234"
        assert paper.doi == "10.48550/arxiv.2401.01234"
        assert paper.full_text_url == "https://arxiv.org/pdf/2401.01234v2.pdf"
        assert paper.sources == ["arxiv"]


class TestSearch:
    async def test_sends_relevance_sorted_query(self):
        client = AsyncMock()
        client.get.return_value = httpx.Response(
            200, text=ATOM_FEED, request=httpx.Request("GET", arxiv.ARXIV_API_URL)
        )
        records = await arxiv.search(client, "sleep", max_results=7)
        assert len(records) == 1
        params = client.get.call_args.kwargs["params"]
        assert params["sortBy"] == "relevance"
        assert params["max_results"] == "7"
        assert params["search_query"].startswith("(all:sleep)")
