"""Tests for the in-memory document store."""

import pytest

from convomemory.errors import (
    CollectionNotFoundError,
    DocumentNotFoundError,
    InvalidArgumentError,
)
from convomemory.services.document_store import InMemoryDocumentStore, LanceDBDocumentStore

MAPPING = {"owner": "keyword", "rank": "integer"}


@pytest.fixture
def store():
    return InMemoryDocumentStore()


class TestCollections:
    """Tests for collection creation."""

    @pytest.mark.asyncio
    async def test_ensure_collection_reports_creation(self, store):
        assert not await store.has_collection("docs")
        assert await store.ensure_collection("docs", MAPPING) is True
        assert await store.ensure_collection("docs", MAPPING) is False
        assert await store.has_collection("docs")

    @pytest.mark.asyncio
    async def test_missing_collection_raises(self, store):
        with pytest.raises(CollectionNotFoundError):
            await store.search("docs")
        with pytest.raises(CollectionNotFoundError):
            await store.get("docs", "x")
        with pytest.raises(CollectionNotFoundError):
            await store.index("docs", {"rank": 1})


class TestVisibility:
    """Search sees writes only after refresh; get is real-time."""

    @pytest.mark.asyncio
    async def test_index_not_searchable_until_refresh(self, store):
        await store.ensure_collection("docs", MAPPING)
        doc_id = await store.index("docs", {"owner": "a", "rank": 1})

        assert await store.get("docs", doc_id) == {"owner": "a", "rank": 1}
        assert await store.search("docs") == []

        await store.refresh("docs")
        hits = await store.search("docs")
        assert [h["id"] for h in hits] == [doc_id]
        assert hits[0]["owner"] == "a"

    @pytest.mark.asyncio
    async def test_delete_still_searchable_until_refresh(self, store):
        await store.ensure_collection("docs", MAPPING)
        doc_id = await store.index("docs", {"owner": "a", "rank": 1})
        await store.refresh("docs")

        assert await store.delete("docs", doc_id) is True
        assert await store.get("docs", doc_id) is None
        assert len(await store.search("docs")) == 1

        await store.refresh("docs")
        assert await store.search("docs") == []

    @pytest.mark.asyncio
    async def test_auto_refresh(self):
        store = InMemoryDocumentStore(auto_refresh=True)
        await store.ensure_collection("docs", MAPPING)
        await store.index("docs", {"owner": "a", "rank": 1})
        assert len(await store.search("docs")) == 1

    @pytest.mark.asyncio
    async def test_returned_documents_are_copies(self, store):
        await store.ensure_collection("docs", MAPPING)
        doc_id = await store.index("docs", {"owner": "a", "rank": 1})
        doc = await store.get("docs", doc_id)
        doc["rank"] = 99
        assert (await store.get("docs", doc_id))["rank"] == 1


class TestWrites:
    """Tests for update and delete."""

    @pytest.mark.asyncio
    async def test_update_merges_fields(self, store):
        await store.ensure_collection("docs", MAPPING)
        doc_id = await store.index("docs", {"owner": "a", "rank": 1})
        await store.update("docs", doc_id, {"rank": 2})
        assert await store.get("docs", doc_id) == {"owner": "a", "rank": 2}

    @pytest.mark.asyncio
    async def test_update_missing_document(self, store):
        await store.ensure_collection("docs", MAPPING)
        with pytest.raises(DocumentNotFoundError):
            await store.update("docs", "nope", {"rank": 2})

    @pytest.mark.asyncio
    async def test_delete_missing_document(self, store):
        await store.ensure_collection("docs", MAPPING)
        assert await store.delete("docs", "nope") is False

    @pytest.mark.asyncio
    async def test_bulk_delete_ignores_missing_ids(self, store):
        await store.ensure_collection("docs", MAPPING)
        ids = [await store.index("docs", {"rank": i}) for i in range(3)]
        result = await store.bulk_delete("docs", ids + ["gone"])
        assert result.deleted == 3
        assert not result.has_failures
        for doc_id in ids:
            assert await store.get("docs", doc_id) is None


class TestSearch:
    """Tests for filtering, sorting and paging."""

    @pytest.mark.asyncio
    async def test_filter_sort_and_page(self, store):
        await store.ensure_collection("docs", MAPPING)
        for rank in range(10):
            owner = "a" if rank % 2 == 0 else "b"
            await store.index("docs", {"owner": owner, "rank": rank})
        await store.refresh("docs")

        hits = await store.search(
            "docs", filters={"owner": "a"}, sort_field="rank", sort_order="desc", size=10
        )
        assert [h["rank"] for h in hits] == [8, 6, 4, 2, 0]

        page = await store.search(
            "docs", sort_field="rank", sort_order="asc", from_=3, size=4
        )
        assert [h["rank"] for h in page] == [3, 4, 5, 6]

    @pytest.mark.asyncio
    async def test_filter_on_none_matches_missing_field(self, store):
        await store.ensure_collection("docs", MAPPING)
        await store.index("docs", {"owner": None, "rank": 1})
        await store.index("docs", {"owner": "a", "rank": 2})
        await store.refresh("docs")

        hits = await store.search("docs", filters={"owner": None})
        assert [h["rank"] for h in hits] == [1]

    @pytest.mark.asyncio
    async def test_offset_past_end_is_empty(self, store):
        await store.ensure_collection("docs", MAPPING)
        await store.index("docs", {"rank": 1})
        await store.refresh("docs")
        assert await store.search("docs", from_=5, size=10) == []

    @pytest.mark.asyncio
    async def test_negative_paging_rejected(self, store):
        await store.ensure_collection("docs", MAPPING)
        with pytest.raises(InvalidArgumentError):
            await store.search("docs", from_=-1)
        with pytest.raises(InvalidArgumentError):
            await store.search("docs", size=-1)


class TestLanceDBTableListing:
    """Table listing across LanceDB connection APIs (no database needed)."""

    class PagedConnection:
        class Response:
            tables = ["conversational-meta"]
            page_token = None

        def list_tables(self):
            return self.Response()

        def table_names(self):
            raise AssertionError("deprecated listing used")

    class ListConnection:
        def list_tables(self):
            return ["conversational-meta"]

    class LegacyConnection:
        def table_names(self):
            return ["conversational-meta"]

    @pytest.mark.parametrize("connection", [PagedConnection, ListConnection, LegacyConnection])
    def test_table_names(self, connection):
        store = LanceDBDocumentStore(db_path="unused")
        store._db = connection()
        assert store._table_names() == ["conversational-meta"]
