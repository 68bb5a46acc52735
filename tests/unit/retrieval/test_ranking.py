"""Tests for URL canonicalization, deduplication and ranking."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from ideascope.models.document import Document, DocumentMetadata
from ideascope.retrieval.extract import compute_hash
from ideascope.retrieval.ranking import DedupeRanker, canonicalize_url

NOW = datetime(2025, 6, 1, tzinfo=UTC)


def _doc(url: str, content: str = "", domain: str = "example.com", published: datetime | None = None) -> Document:
    return Document(
        url=url,
        content=content,
        content_hash=compute_hash(content),
        metadata=DocumentMetadata(domain=domain, fetched_at=NOW, published_date=published),
    )


# ══════════════════════════════════════════════════════════════════════════════
# Canonical URLs
# ══════════════════════════════════════════════════════════════════════════════


class TestCanonicalizeUrl:
    def test_host_case_www_and_trailing_slash(self) -> None:
        assert canonicalize_url("https://X.com/a") == canonicalize_url("https://www.x.com/a/")

    def test_drops_fragment_and_tracking_params(self) -> None:
        url = "https://example.com/report?utm_source=news&id=7&fbclid=abc#section-2"
        assert canonicalize_url(url) == "https://example.com/report?id=7"

    def test_sorts_remaining_params(self) -> None:
        assert canonicalize_url("https://example.com/?b=2&a=1") == "https://example.com?a=1&b=2"

    def test_keeps_port(self) -> None:
        assert canonicalize_url("http://Example.com:8080/x/") == "http://example.com:8080/x"

    def test_path_case_is_preserved(self) -> None:
        assert canonicalize_url("https://example.com/Reports") != canonicalize_url("https://example.com/reports")

    def test_relative_url_unchanged(self) -> None:
        assert canonicalize_url("/just/a/path") == "/just/a/path"


# ══════════════════════════════════════════════════════════════════════════════
# Deduplication
# ══════════════════════════════════════════════════════════════════════════════


class TestDeduplicate:
    def test_same_canonical_url_keeps_first(self) -> None:
        first = _doc("https://X.com/a", "first body")
        second = _doc("https://www.x.com/a/", "second body")

        unique = DedupeRanker().deduplicate([first, second])

        assert unique == [first]

    def test_identical_content_hash_keeps_first(self) -> None:
        first = _doc("https://a.com/post", "same text")
        second = _doc("https://b.com/mirror", "same text")

        assert DedupeRanker().deduplicate([first, second]) == [first]

    def test_empty_hashes_do_not_collide(self) -> None:
        docs = [_doc("https://a.com/1"), _doc("https://a.com/2")]
        assert len(DedupeRanker().deduplicate(docs)) == 2

    def test_order_preserved(self) -> None:
        docs = [_doc(f"https://site{i}.com/", f"body {i}") for i in range(5)]
        assert [d.url for d in DedupeRanker().deduplicate(docs)] == [d.url for d in docs]


# ══════════════════════════════════════════════════════════════════════════════
# Scoring and ranking
# ══════════════════════════════════════════════════════════════════════════════


class TestScoring:
    def test_recency_buckets(self) -> None:
        ranker = DedupeRanker(now=NOW)
        ages = {10: 10, 60: 7, 120: 5, 300: 3, 800: 1}
        for days, expected in ages.items():
            assert ranker.recency_score(NOW - timedelta(days=days)) == expected
        assert ranker.recency_score(None) == 0

    def test_naive_datetime_treated_as_utc(self) -> None:
        ranker = DedupeRanker(now=NOW)
        assert ranker.recency_score(datetime(2025, 5, 25)) == 10

    def test_authority_tiers(self) -> None:
        assert DedupeRanker.authority_score("reuters.com") == 10
        assert DedupeRanker.authority_score("en.wikipedia.org") == 10
        assert DedupeRanker.authority_score("census.gov") == 8
        assert DedupeRanker.authority_score("mit.edu") == 8
        assert DedupeRanker.authority_score("techcrunch.com") == 5
        assert DedupeRanker.authority_score("someblog.io") == 3
        assert DedupeRanker.authority_score("notreuters.com") == 3

    def test_overlap_counts_distinct_queries(self) -> None:
        content = "Report on AI note taking. The AI NOTE TAKING market grows."
        queries = ["ai note taking", "AI note taking", "crm software"]
        assert DedupeRanker.overlap_score(content, queries) == 5

    def test_score_is_sum_of_components(self) -> None:
        ranker = DedupeRanker(now=NOW)
        doc = _doc(
            "https://reuters.com/x",
            "ai note taking is booming",
            domain="reuters.com",
            published=NOW - timedelta(days=5),
        )
        assert ranker.score(doc, ["ai note taking"]) == 25.0

    def test_fetched_at_used_when_no_published_date(self) -> None:
        ranker = DedupeRanker(now=NOW)
        assert ranker.score(_doc("https://x.io/", "text"), []) == 10 + 3


class TestRank:
    def test_best_first(self) -> None:
        ranker = DedupeRanker(now=NOW)
        old = NOW - timedelta(days=800)
        low = _doc("https://blog.io/a", "nothing relevant", domain="blog.io", published=old)
        high = _doc("https://reuters.com/b", "market size growth", domain="reuters.com", published=old)

        ranked = ranker.rank([low, high], ["market size growth"])

        assert [d.url for d in ranked] == [high.url, low.url]
        assert ranked[0].rank_score > ranked[1].rank_score

    def test_stable_for_equal_scores(self) -> None:
        ranker = DedupeRanker(now=NOW)
        docs = [_doc(f"https://site{i}.io/", f"body {i}", domain=f"site{i}.io") for i in range(4)]
        assert [d.url for d in ranker.rank(docs, [])] == [d.url for d in docs]

    def test_raising_a_component_never_lowers_rank(self) -> None:
        ranker = DedupeRanker(now=NOW)
        old = NOW - timedelta(days=800)
        base = _doc("https://blog.io/a", "plain text", domain="blog.io", published=old)
        peer = _doc("https://other.io/b", "plain text two", domain="other.io", published=old)
        boosted = base.model_copy(update={"metadata": base.metadata.model_copy(update={"domain": "forbes.com"})})

        before = [d.url for d in ranker.rank([peer, base], [])]
        after = [d.url for d in ranker.rank([peer, boosted], [])]

        assert before.index(base.url) == 1
        assert after.index(base.url) == 0

    def test_reranking_ranked_documents(self) -> None:
        ranker = DedupeRanker(now=NOW)
        ranked = ranker.rank([_doc("https://a.io/", "x")], [])
        again = ranker.rank(ranked, [])
        assert again[0].rank_score == ranked[0].rank_score
