import pytest

from news_events.exceptions import StoreError
from news_events.grouping import GroupingOptions, group_recent_items_into_events
from news_events.models import Item
from news_events.store import MemoryStore


def _events_by_size(store):
    return sorted(store.events.values(), key=lambda e: e.item_count, reverse=True)


def test_similar_headlines_from_two_sources_share_an_event(store, add_item):
    add_item("Punch", "CBN raises rates", minutes_ago=60)
    add_item("BusinessDay", "CBN raises interest rates again", minutes_ago=0)

    result = group_recent_items_into_events(store, GroupingOptions(), now=store._clock())

    assert result.created_events == 1
    assert result.linked_items == 2
    assert result.considered_items == 2
    (event,) = store.events.values()
    assert event.item_count == 2
    # Bounds widen to cover both publication times.
    assert (event.end_at - event.start_at).total_seconds() == 3600


def test_unrelated_headline_seeds_its_own_event(store, add_item):
    add_item("Punch", "Fuel price hike sparks protest in Lagos", minutes_ago=90)
    add_item("Vanguard", "Lagos protest over fuel price hike", minutes_ago=60)
    add_item("Guardian", "Super Eagles beat Ghana in friendly", minutes_ago=30)

    result = group_recent_items_into_events(store, GroupingOptions(), now=store._clock())

    assert result.created_events == 2
    assert result.linked_items == 3
    assert [e.item_count for e in _events_by_size(store)] == [2, 1]
    similarities = sorted(link.similarity for link in store.links)
    assert similarities[0] == pytest.approx(5 / 7)
    assert similarities[1:] == [1.0, 1.0]


def test_second_run_without_new_items_changes_nothing(store, add_item):
    add_item("Punch", "CBN raises rates", minutes_ago=60)
    add_item("BusinessDay", "CBN raises interest rates again", minutes_ago=0)
    group_recent_items_into_events(store, GroupingOptions(), now=store._clock())

    again = group_recent_items_into_events(store, GroupingOptions(), now=store._clock())

    assert again.created_events == 0
    assert again.linked_items == 0
    assert len(store.events) == 1
    assert len(store.links) == 2


def test_new_item_joins_event_from_earlier_run(store, clock, add_item):
    add_item("Punch", "CBN raises rates", minutes_ago=0)
    group_recent_items_into_events(store, GroupingOptions(), now=clock())

    clock.advance(hours=2)
    add_item("Channels", "CBN raises benchmark rates", minutes_ago=0)
    result = group_recent_items_into_events(store, GroupingOptions(), now=clock())

    assert result.created_events == 0
    assert result.linked_items == 1
    (event,) = store.events.values()
    assert event.item_count == 2


def test_item_outside_hours_window_starts_new_event(store, add_item):
    add_item("Punch", "CBN raises rates", minutes_ago=0)
    add_item("Punch", "CBN raises rates today", minutes_ago=60 * 60)

    result = group_recent_items_into_events(
        store, GroupingOptions(hours_window=48), now=store._clock()
    )

    assert result.created_events == 2


def test_higher_threshold_keeps_items_apart(store, add_item):
    add_item("Punch", "CBN raises rates", minutes_ago=60)
    add_item("BusinessDay", "CBN raises interest rates again", minutes_ago=0)

    result = group_recent_items_into_events(
        store, GroupingOptions(similarity_threshold=0.9), now=store._clock()
    )

    assert result.created_events == 2


def test_headline_without_tokens_stays_unlinked(store, add_item):
    add_item("Punch", "It is on", minutes_ago=0)

    result = group_recent_items_into_events(store, GroupingOptions(), now=store._clock())

    assert result.considered_items == 1
    assert result.linked_items == 0
    assert store.events == {}


def test_storage_error_propagates_and_keeps_earlier_links(clock):
    class FailingStore(MemoryStore):
        def __init__(self, **kwargs):
            super().__init__(**kwargs)
            self.attach_calls = 0

        def attach_item(self, event_id, item, similarity):
            self.attach_calls += 1
            if self.attach_calls == 2:
                raise StoreError("disk full")
            return super().attach_item(event_id, item, similarity)

    store = FailingStore(clock=clock)
    source = store.upsert_source("Punch")
    for idx, title in enumerate(["CBN raises rates", "Flooding hits Kano"]):
        store.add_item(
            Item(
                source_id=source.id,
                title=title,
                published_at=clock(),
                fetched_at=clock(),
                hash=f"h{idx}",
            )
        )

    with pytest.raises(StoreError):
        group_recent_items_into_events(store, GroupingOptions(), now=clock())

    assert len(store.links) == 1


@pytest.mark.parametrize("sample_size,expected_events", [(1, 2), (2, 1)])
def test_in_run_sample_is_capped_at_sample_size(store, add_item, sample_size, expected_events):
    # Processed newest first. The third headline overlaps the first (0.75) but
    # not the second (0.4), so it only joins while the first is still sampled.
    add_item("Punch", "Kano flood destroys homes", minutes_ago=0)
    add_item("Vanguard", "Kano flood destroys farms", minutes_ago=10)
    add_item("Guardian", "Flood destroys homes", minutes_ago=20)

    result = group_recent_items_into_events(
        store, GroupingOptions(event_sample_size=sample_size), now=store._clock()
    )

    assert result.linked_items == 3
    assert result.created_events == expected_events
