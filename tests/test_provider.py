"""
Data provider tests: read/insert/update/delete/type lookups against a
temporary SQLite database, including scope enforcement and notification.
"""

import gc
import sqlite3

import pytest

from contentstore.core.contract import History, Images
from contentstore.core.cursor import ResultCursor
from contentstore.core.errors import (
    ConstraintViolation,
    InvalidColumn,
    MalformedPredicate,
    UnknownResource,
    UnsupportedOperation,
)

from conftest import AUTHORITY, notified, uri

PAYLOAD = {
    "image_id": "x",
    "image_url": "https://example.com/x.jpg",
    "image_title": "Harbor at dusk",
    "image_width": 1920,
    "image_height": 1080,
}


def seed_images(provider, *image_ids):
    for i, image_id in enumerate(image_ids):
        provider.insert(uri("images"), {"image_id": image_id, "image_width": (i + 1) * 10})


def image_ids(cursor):
    return [row["image_id"] for row in cursor]


class TestQuery:

    def test_round_trip(self, provider):
        provider.insert(uri("images"), PAYLOAD)

        with provider.query(uri("images/x"), projection=list(PAYLOAD)) as cursor:
            rows = cursor.fetchall()

        assert len(rows) == 1
        assert dict(rows[0]) == PAYLOAD

    def test_item_scope_survives_trivially_true_predicate(self, provider):
        seed_images(provider, "a", "b", "c")

        cursor = provider.query(uri("images/b"), selection="1=1")
        assert image_ids(cursor) == ["b"]

    def test_caller_predicate_narrows_item_scope(self, provider):
        seed_images(provider, "a", "b", "c")

        cursor = provider.query(uri("images/b"), selection="image_id=?", selection_args=["a"])
        assert image_ids(cursor) == []

    def test_caller_or_stays_inside_scope(self, provider):
        seed_images(provider, "a", "b", "c")

        cursor = provider.query(uri("images/b"), selection="image_id='a' OR 1=1")
        assert image_ids(cursor) == ["b"]

    def test_parenthesis_escape_is_rejected(self, provider):
        seed_images(provider, "a", "b")

        with pytest.raises(MalformedPredicate):
            provider.query(uri("images/b"), selection="1) OR (1")

    def test_argument_mismatch_is_rejected(self, provider):
        with pytest.raises(MalformedPredicate):
            provider.query(uri("images"), selection="image_id=?", selection_args=["a", "b"])

    def test_collection_with_selection_and_sort(self, provider):
        seed_images(provider, "a", "b", "c")

        cursor = provider.query(uri("images"), selection="image_width>=?",
                                selection_args=[20], sort_order="image_id DESC")
        assert image_ids(cursor) == ["c", "b"]

    def test_limit(self, provider):
        seed_images(provider, "a", "b", "c")
        cursor = provider.query(uri("images"), sort_order="image_id", limit=2)
        assert image_ids(cursor) == ["a", "b"]

    def test_invalid_sort_order(self, provider):
        with pytest.raises(InvalidColumn):
            provider.query(uri("images"), sort_order="image_id; DROP TABLE images")

    def test_distinct_option(self, provider):
        for action in ("viewed", "viewed", "shared"):
            provider.insert(uri("history"), {"image_id": "x", "history_action": action})

        plain = provider.query(uri("history"), projection=["history_action"])
        assert len(plain.fetchall()) == 3

        distinct = provider.query(uri("history", distinct="1"), projection=["history_action"],
                                  sort_order="history_action")
        assert [row["history_action"] for row in distinct] == ["shared", "viewed"]

    def test_non_numeric_history_key_matches_nothing(self, provider):
        provider.insert(uri("history"), {"history_action": "viewed"})
        assert provider.query(uri("history/abc")).fetchall() == []

    def test_unknown_address(self, provider):
        with pytest.raises(UnknownResource):
            provider.query(uri("videos"))

    def test_whole_store_is_not_readable(self, provider):
        with pytest.raises(UnknownResource):
            provider.query(uri())

    def test_read_registers_interest_without_publishing(self, provider, sink):
        cursor = provider.query(uri("images/x"))

        assert isinstance(cursor, ResultCursor)
        assert cursor.notification_address == uri("images/x")
        sink.register_interest.assert_called_once_with(uri("images/x"), cursor)
        sink.notify_change.assert_not_called()

    def test_cursor_columns(self, provider):
        cursor = provider.query(uri("images"), projection=["image_id", "image_title"])
        assert cursor.columns == ["image_id", "image_title"]


class TestInsert:

    def test_image_address_uses_declared_key(self, provider, sink):
        address = provider.insert(uri("images"), PAYLOAD)

        assert address == Images.build_image_uri("x", AUTHORITY)
        assert str(address) == f"content://{AUTHORITY}/images/x"
        assert notified(sink) == [address]

    def test_duplicate_image_key_fails_and_leaves_store_unchanged(self, provider, sink):
        provider.insert(uri("images"), PAYLOAD)

        with pytest.raises(ConstraintViolation) as exc_info:
            provider.insert(uri("images"), dict(PAYLOAD, image_title="Replacement"))

        assert isinstance(exc_info.value.__cause__, sqlite3.IntegrityError)
        rows = provider.query(uri("images")).fetchall()
        assert len(rows) == 1
        assert rows[0]["image_title"] == "Harbor at dusk"
        assert len(notified(sink)) == 1

    def test_missing_image_key_is_a_constraint_violation(self, provider):
        with pytest.raises(ConstraintViolation):
            provider.insert(uri("images"), {"image_title": "no key"})

    def test_empty_image_key_is_rejected(self, provider, sink):
        with pytest.raises(ConstraintViolation):
            provider.insert(uri("images"), {"image_id": "", "image_title": "no address"})

        assert provider.count("images") == 0
        sink.notify_change.assert_not_called()

    def test_history_address_routes_back_to_row(self, provider):
        first = provider.insert(uri("history"), {"image_id": "x", "history_action": "viewed"})
        second = provider.insert(uri("history"), {"image_id": "x", "history_action": "shared"})

        assert first.segments[0] == "history"
        assert int(second.segments[1]) > int(first.segments[1])

        rows = provider.query(second).fetchall()
        assert len(rows) == 1
        assert rows[0]["history_action"] == "shared"
        assert str(rows[0]["_id"]) == History.get_history_id(second)

    def test_history_accepts_empty_record(self, provider):
        address = provider.insert(uri("history"), {})
        assert len(provider.query(address).fetchall()) == 1

    @pytest.mark.parametrize("path", ["images/x", "history/1", ""])
    def test_insert_needs_a_collection(self, provider, sink, path):
        with pytest.raises(UnsupportedOperation):
            provider.insert(uri(path), PAYLOAD)
        sink.notify_change.assert_not_called()

    def test_insert_unknown_collection(self, provider):
        with pytest.raises(UnknownResource):
            provider.insert(uri("videos"), PAYLOAD)

    def test_sync_adapter_insert_is_silent(self, provider, sink):
        address = provider.insert(uri("images", caller_is_syncadapter="true"), PAYLOAD)

        assert address == Images.build_image_uri("x", AUTHORITY)
        sink.notify_change.assert_not_called()

    def test_unknown_column_is_a_storage_error(self, provider):
        with pytest.raises(sqlite3.OperationalError):
            provider.insert(uri("images"), {"image_id": "x", "bogus": 1})

    def test_bulk_insert(self, provider, sink):
        count = provider.bulk_insert(uri("images"), [{"image_id": i} for i in ("a", "b", "c")])

        assert count == 3
        assert len(notified(sink)) == 3
        assert provider.count("images") == 3


class TestUpdate:

    def test_item_update(self, provider, sink):
        seed_images(provider, "a", "b")
        sink.reset_mock()

        count = provider.update(uri("images/a"), {"image_title": "renamed"})

        assert count == 1
        titles = {row["image_id"]: row["image_title"] for row in provider.query(uri("images"))}
        assert titles == {"a": "renamed", "b": None}
        assert notified(sink) == [uri("images/a")]

    def test_collection_update_with_selection(self, provider):
        seed_images(provider, "a", "b", "c")

        count = provider.update(uri("images"), {"image_title": "wide"},
                                selection="image_width>?", selection_args=[15])
        assert count == 2

    def test_item_scope_cannot_be_widened(self, provider):
        seed_images(provider, "a", "b", "c")

        count = provider.update(uri("images/a"), {"image_title": "t"}, selection="1=1 OR 1=1")
        assert count == 1

    def test_zero_rows_still_notifies(self, provider, sink):
        count = provider.update(uri("images/missing"), {"image_title": "t"})

        assert count == 0
        assert notified(sink) == [uri("images/missing")]

    def test_zero_rows_sync_adapter_is_silent(self, provider, sink):
        count = provider.update(uri("images/missing", caller_is_syncadapter="true"), {"image_title": "t"})

        assert count == 0
        sink.notify_change.assert_not_called()

    def test_key_collision_on_update(self, provider):
        seed_images(provider, "a", "b")

        with pytest.raises(ConstraintViolation):
            provider.update(uri("images/b"), {"image_id": "a"})

    def test_clearing_image_key_is_rejected(self, provider, sink):
        seed_images(provider, "a")
        sink.reset_mock()

        with pytest.raises(ConstraintViolation):
            provider.update(uri("images/a"), {"image_id": ""})

        assert image_ids(provider.query(uri("images"))) == ["a"]
        sink.notify_change.assert_not_called()

    def test_empty_values(self, provider):
        with pytest.raises(ValueError):
            provider.update(uri("images"), {})

    def test_update_whole_store_is_unknown(self, provider):
        with pytest.raises(UnknownResource):
            provider.update(uri(), {"image_title": "t"})


class TestDelete:

    def test_item_delete(self, provider, sink):
        seed_images(provider, "a", "b")
        sink.reset_mock()

        assert provider.delete(uri("images/a")) == 1
        assert image_ids(provider.query(uri("images"))) == ["b"]
        assert notified(sink) == [uri("images/a")]

    def test_history_item_delete(self, provider):
        address = provider.insert(uri("history"), {"history_action": "viewed"})
        provider.insert(uri("history"), {"history_action": "shared"})

        assert provider.delete(address) == 1
        assert provider.count("history") == 1

    def test_collection_delete_with_selection(self, provider):
        seed_images(provider, "a", "b", "c")

        count = provider.delete(uri("images"), selection="image_width<?", selection_args=[25])
        assert count == 2
        assert image_ids(provider.query(uri("images"))) == ["c"]

    def test_zero_rows_still_notifies(self, provider, sink):
        assert provider.delete(uri("history/999")) == 0
        assert notified(sink) == [uri("history/999")]

    def test_zero_rows_sync_adapter_is_silent(self, provider, sink):
        assert provider.delete(uri("history/999", caller_is_syncadapter="true")) == 0
        sink.notify_change.assert_not_called()

    def test_delete_unknown(self, provider, sink):
        with pytest.raises(UnknownResource):
            provider.delete(uri("videos/1"))
        sink.notify_change.assert_not_called()


class TestWholeStoreDelete:

    def test_reset_returns_one_and_empties_tables(self, provider, sink):
        seed_images(provider, "a", "b", "c")
        provider.insert(uri("history"), {"history_action": "viewed"})
        sink.reset_mock()

        assert provider.delete(uri()) == 1

        assert provider.query(uri("images")).fetchall() == []
        assert provider.query(uri("history")).fetchall() == []
        assert notified(sink) == [uri()]

    def test_reset_on_empty_store_still_returns_one(self, provider):
        assert provider.delete(uri()) == 1

    def test_store_is_usable_after_reset(self, provider):
        seed_images(provider, "a")
        provider.delete(uri())

        provider.insert(uri("images"), PAYLOAD)
        rows = provider.query(uri("images/x")).fetchall()
        assert len(rows) == 1

    def test_sync_adapter_reset_is_silent(self, provider, sink):
        assert provider.delete(uri(caller_is_syncadapter="true")) == 1
        sink.notify_change.assert_not_called()


class TestGetType:

    def test_four_distinct_types(self, provider):
        types = [
            provider.get_type(uri("images")),
            provider.get_type(uri("images/abc")),
            provider.get_type(uri("history")),
            provider.get_type(uri("history/5")),
        ]
        assert types == [
            Images.CONTENT_TYPE,
            Images.CONTENT_ITEM_TYPE,
            History.CONTENT_TYPE,
            History.CONTENT_ITEM_TYPE,
        ]
        assert len(set(types)) == 4

    @pytest.mark.parametrize("path", ["", "videos", "images/a/b", "images/"])
    def test_unknown(self, provider, path):
        address = uri(path) if path != "images/" else f"content://{AUTHORITY}/images/"
        with pytest.raises(UnknownResource):
            provider.get_type(address)


class TestObservation:

    def test_cursor_goes_stale_on_change(self, live_provider, bus):
        live_provider.insert(uri("images"), PAYLOAD)
        cursor = live_provider.query(uri("images/x"))
        seen = []
        cursor.add_change_listener(seen.append)

        live_provider.update(uri("images/x"), {"image_title": "new"})

        assert cursor.is_stale
        assert seen == [uri("images/x")]

    def test_collection_cursor_hears_about_inserted_item(self, live_provider):
        cursor = live_provider.query(uri("images"))

        live_provider.insert(uri("images"), PAYLOAD)
        assert cursor.is_stale

    def test_unrelated_change_leaves_cursor_fresh(self, live_provider):
        cursor = live_provider.query(uri("images/x"))

        live_provider.insert(uri("history"), {"history_action": "viewed"})
        assert not cursor.is_stale

    def test_reset_reaches_every_cursor(self, live_provider):
        images = live_provider.query(uri("images"))
        history = live_provider.query(uri("history/1"))

        live_provider.delete(uri())
        assert images.is_stale
        assert history.is_stale

    def test_discarded_cursors_are_forgotten(self, live_provider, bus):
        live_provider.insert(uri("images"), PAYLOAD)
        for _ in range(50):
            assert len(list(live_provider.query(uri("images/x")))) == 1
        gc.collect()

        assert bus.observer_count() == 0

    def test_close_unregisters(self, live_provider, bus):
        with live_provider.query(uri("images")):
            assert bus.observer_count() == 1
        assert bus.observer_count() == 0


def test_health(provider):
    seed_images(provider, "a", "b")
    provider.insert(uri("history"), {"history_action": "viewed"})

    health = provider.health()
    assert health.status == "healthy"
    assert health.db_health
    assert health.image_count == 2
    assert health.history_count == 1


def test_count_rejects_unknown_table(provider):
    with pytest.raises(ValueError):
        provider.count("sqlite_master")
