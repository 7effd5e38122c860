"""Tests for the interactions collection."""

import typing
from datetime import timedelta

import pytest

from convomemory.errors import InvalidArgumentError, StoreFailureError
from convomemory.interfaces import Interaction
from convomemory.schemas import INTERACTIONS_COLLECTION, utc_now
from convomemory.services import InteractionCollection
from convomemory.testing import FaultyDocumentStore


class TestClassDefinition:
    """The collection class defines a method named ``list``."""

    def test_annotations_resolve_to_builtin_list(self):
        hints = typing.get_type_hints(InteractionCollection.iter_pages)
        assert hints["return"] == typing.AsyncIterator[list[Interaction]]
        assert typing.get_type_hints(InteractionCollection.list_all)["return"] == list[Interaction]


async def add_interactions(collection, conversation_id, count, start=None):
    """Add ``count`` interactions one second apart, oldest first."""
    start = start or utc_now()
    ids = []
    for i in range(count):
        ids.append(await collection.create(
            conversation_id,
            input=f"question {i}",
            prompt="prompt",
            response=f"answer {i}",
            agent="agent",
            metadata="{}",
            timestamp=start + timedelta(seconds=i),
        ))
    return ids


class TestInteraction:
    """Tests for the Interaction value type."""

    def test_doc_round_trip(self):
        interaction = Interaction(
            id="i1", timestamp=utc_now(), conversation_id="c1",
            input="in", prompt="p", response="out", agent="a", metadata='{"k": 1}',
        )
        assert Interaction.from_doc("i1", interaction.to_doc()) == interaction


class TestCreateAndList:
    """Tests for creating and paging interactions."""

    @pytest.mark.asyncio
    async def test_create_makes_collection(self, interactions, store):
        await interactions.create("c1", "in", "p", "out", "a", "")
        assert await store.has_collection(INTERACTIONS_COLLECTION)

    @pytest.mark.asyncio
    async def test_list_most_recent_first(self, interactions, store):
        ids = await add_interactions(interactions, "c1", 5)
        await store.refresh(INTERACTIONS_COLLECTION)

        listed = await interactions.list("c1", 0, 10)

        assert [i.id for i in listed] == list(reversed(ids))
        timestamps = [i.timestamp for i in listed]
        assert timestamps == sorted(timestamps, reverse=True)

    @pytest.mark.asyncio
    async def test_list_only_requested_conversation(self, interactions, store):
        await add_interactions(interactions, "c1", 3)
        other = await add_interactions(interactions, "c2", 2)
        await store.refresh(INTERACTIONS_COLLECTION)

        assert {i.id for i in await interactions.list("c2", 0, 10)} == set(other)

    @pytest.mark.asyncio
    async def test_not_listed_before_refresh(self, interactions):
        await add_interactions(interactions, "c1", 2)
        assert await interactions.list("c1", 0, 10) == []

    @pytest.mark.asyncio
    async def test_two_pages_have_no_gaps_or_duplicates(self, interactions, store):
        ids = await add_interactions(interactions, "c1", 30)
        await store.refresh(INTERACTIONS_COLLECTION)

        page1 = await interactions.list("c1", 0, 15)
        page2 = await interactions.list("c1", 15, 15)

        seen = [i.id for i in page1 + page2]
        assert len(seen) == len(set(seen)) == 30
        assert set(seen) == set(ids)
        assert page1[-1].timestamp > page2[0].timestamp

    @pytest.mark.asyncio
    async def test_list_without_collection_is_empty(self, interactions):
        assert await interactions.list("c1", 0, 10) == []

    @pytest.mark.asyncio
    async def test_non_positive_limit_rejected(self, interactions):
        with pytest.raises(InvalidArgumentError):
            await interactions.list("c1", 0, 0)
        with pytest.raises(InvalidArgumentError):
            await interactions.list("c1", 0, -3)

    @pytest.mark.asyncio
    async def test_write_failure_propagates(self):
        interactions = InteractionCollection(FaultyDocumentStore(fail_on={"index"}))
        with pytest.raises(StoreFailureError):
            await interactions.create("c1", "in", "p", "out", "a", "")


class TestPaging:
    """Tests for iter_pages and list_all."""

    @pytest.mark.asyncio
    async def test_iter_pages_stops_after_short_page(self, interactions, store):
        await add_interactions(interactions, "c1", 7)
        await store.refresh(INTERACTIONS_COLLECTION)

        sizes = [len(page) async for page in interactions.iter_pages("c1", 3)]
        assert sizes == [3, 3, 1]

    @pytest.mark.asyncio
    async def test_iter_pages_exact_multiple_ends_with_empty_page(self, interactions, store):
        await add_interactions(interactions, "c1", 6)
        await store.refresh(INTERACTIONS_COLLECTION)

        sizes = [len(page) async for page in interactions.iter_pages("c1", 3)]
        assert sizes == [3, 3, 0]

    @pytest.mark.asyncio
    async def test_iter_pages_restarts_from_offset(self, interactions, store):
        ids = await add_interactions(interactions, "c1", 7)
        await store.refresh(INTERACTIONS_COLLECTION)

        resumed = [
            i.id
            async for page in interactions.iter_pages("c1", 3, start=3)
            for i in page
        ]
        assert resumed == list(reversed(ids))[3:]

    @pytest.mark.asyncio
    async def test_list_all(self, interactions, store):
        ids = await add_interactions(interactions, "c1", 11)
        await store.refresh(INTERACTIONS_COLLECTION)

        everything = await interactions.list_all("c1", 4)
        assert [i.id for i in everything] == list(reversed(ids))

    @pytest.mark.asyncio
    async def test_list_all_invalid_page_size(self, interactions):
        with pytest.raises(InvalidArgumentError):
            await interactions.list_all("c1", 0)

    @pytest.mark.asyncio
    async def test_iter_pages_invalid_page_size(self, interactions):
        with pytest.raises(InvalidArgumentError):
            async for _ in interactions.iter_pages("c1", -1):
                pass


class TestDeleteAll:
    """Tests for deleting every interaction of a conversation."""

    @pytest.mark.asyncio
    async def test_deletes_only_that_conversation(self, interactions, store):
        await add_interactions(interactions, "c1", 65)
        kept = await add_interactions(interactions, "c2", 3)

        assert await interactions.delete_all_for_conversation("c1") is True

        await store.refresh(INTERACTIONS_COLLECTION)
        assert await interactions.list("c1", 0, 100) == []
        assert {i.id for i in await interactions.list("c2", 0, 10)} == set(kept)

    @pytest.mark.asyncio
    async def test_drains_in_pages_with_one_bulk_delete(self):
        store = FaultyDocumentStore()
        interactions = InteractionCollection(store)
        await add_interactions(interactions, "c1", 65)

        assert await interactions.delete_all_for_conversation("c1") is True
        # 30 + 30 + 5
        assert store.count("search") == 3
        assert store.count("bulk_delete") == 1

    @pytest.mark.asyncio
    async def test_without_collection(self, interactions):
        assert await interactions.delete_all_for_conversation("c1") is True

    @pytest.mark.asyncio
    async def test_nothing_to_delete(self):
        store = FaultyDocumentStore()
        interactions = InteractionCollection(store)
        await interactions.ensure_schema()

        assert await interactions.delete_all_for_conversation("c1") is True
        assert store.count("bulk_delete") == 0

    @pytest.mark.asyncio
    async def test_partial_failure_then_retry(self):
        store = FaultyDocumentStore(bulk_failures=2)
        interactions = InteractionCollection(store)
        await add_interactions(interactions, "c1", 5)

        assert await interactions.delete_all_for_conversation("c1") is False
        assert len(await interactions.list("c1", 0, 10)) == 2

        assert await interactions.delete_all_for_conversation("c1") is True
        assert await interactions.list("c1", 0, 10) == []

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self):
        store = FaultyDocumentStore()
        interactions = InteractionCollection(store)
        await add_interactions(interactions, "c1", 2)
        store.fail_on.add("search")

        with pytest.raises(StoreFailureError):
            await interactions.delete_all_for_conversation("c1")

    def test_invalid_delete_page_size(self, store):
        with pytest.raises(InvalidArgumentError):
            InteractionCollection(store, delete_page_size=0)
