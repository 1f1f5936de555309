"""Tests for the DynamoDB persistence sink with the pynamodb calls patched out."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from app.follow_crawler.config.settings import CrawlerSettings
from app.follow_crawler.core.exceptions import PersistenceError
from app.follow_crawler.storage import (
    DynamoDBPersistenceSink,
    FollowModel,
    PersonModel,
    SequenceModel,
    create_persistence_sink,
)
from app.schema.people import PlanTier, ProfileAttributes
from pynamodb.exceptions import DoesNotExist, GetError, PutError

ATTRS = ProfileAttributes(
    display_name="Alice", image_url="https://i1.example.com/a.jpg", verified=True, plan_tier=PlanTier.PRO, content_count=9
)


def make_sink(**overrides):
    settings = CrawlerSettings(storage_backend="dynamodb", environment="prod", **overrides)
    return DynamoDBPersistenceSink(settings)


def conditional_check_failed():
    cause = SimpleNamespace(response={"Error": {"Code": "ConditionalCheckFailedException", "Message": "exists"}})
    return PutError("conditional check failed", cause=cause)


def fake_sequence_update(value):
    def update(self, actions):
        self.value = value
        return {}

    return update


def test_models_point_at_configured_tables():
    make_sink(people_table="p-table", follows_table="f-table", sequence_table="s-table", aws_region="us-east-1")

    assert PersonModel.Meta.table_name == "p-table"
    assert FollowModel.Meta.table_name == "f-table"
    assert SequenceModel.Meta.table_name == "s-table"
    assert PersonModel.Meta.region == "us-east-1"
    assert PersonModel.Meta.host is None


def test_devlocal_uses_localstack_host():
    settings = CrawlerSettings(
        storage_backend="dynamodb", environment="devlocal", localstack_endpoint="http://localhost:4566"
    )

    sink = create_persistence_sink(settings)

    assert isinstance(sink, DynamoDBPersistenceSink)
    assert FollowModel.Meta.host == "http://localhost:4566"


def test_new_person_gets_sequence_id_and_conditional_save():
    sink = make_sink()
    saved = []

    def save(self, condition=None):
        saved.append((self, condition))

    with patch.object(PersonModel, "get", side_effect=DoesNotExist()), patch.object(
        SequenceModel, "update", autospec=True, side_effect=fake_sequence_update(7)
    ) as update, patch.object(PersonModel, "save", autospec=True, side_effect=save):
        person_id = sink.persist_identity("alice", ATTRS)

    assert person_id == 7
    assert update.call_count == 1
    item, condition = saved[0]
    assert condition is not None
    assert item.handle == "alice"
    assert item.person_id == 7
    assert item.plan == "ArtistPro"
    assert item.verified is True
    assert item.track_count == 9
    assert sink.get_stats()["people_created"] == 1


def test_existing_person_keeps_id():
    sink = make_sink()
    existing = PersonModel("alice", person_id=4, display_name="Old name")

    with patch.object(PersonModel, "get", return_value=existing), patch.object(
        SequenceModel, "update", autospec=True
    ) as update, patch.object(PersonModel, "save", autospec=True) as save:
        person_id = sink.persist_identity("alice", ATTRS)

    assert person_id == 4
    assert update.call_count == 0
    assert save.call_count == 1
    assert existing.display_name == "Alice"
    assert sink.get_stats()["people_updated"] == 1


def test_concurrent_insert_falls_back_to_stored_id():
    sink = make_sink()
    stored = PersonModel("alice", person_id=3, display_name="Alice")

    with patch.object(PersonModel, "get", side_effect=[DoesNotExist(), stored]), patch.object(
        SequenceModel, "update", autospec=True, side_effect=fake_sequence_update(8)
    ), patch.object(PersonModel, "save", autospec=True, side_effect=conditional_check_failed()):
        person_id = sink.persist_identity("alice", ATTRS)

    assert person_id == 3
    assert sink.get_stats()["people_updated"] == 1


def test_other_put_errors_become_persistence_errors():
    sink = make_sink()
    throttled = PutError(
        "throttled", cause=SimpleNamespace(response={"Error": {"Code": "ProvisionedThroughputExceededException"}})
    )

    with patch.object(PersonModel, "get", side_effect=DoesNotExist()), patch.object(
        SequenceModel, "update", autospec=True, side_effect=fake_sequence_update(1)
    ), patch.object(PersonModel, "save", autospec=True, side_effect=throttled):
        with pytest.raises(PersistenceError):
            sink.persist_identity("alice", ATTRS)

    assert sink.get_stats()["errors_encountered"] == 1


def test_read_failure_becomes_persistence_error():
    sink = make_sink()

    with patch.object(PersonModel, "get", side_effect=GetError("unreachable")):
        with pytest.raises(PersistenceError):
            sink.persist_identity("alice", ATTRS)


def test_edges_written_in_one_batch():
    sink = make_sink()
    batch = MagicMock()

    with patch.object(FollowModel, "batch_write") as batch_write:
        batch_write.return_value.__enter__.return_value = batch
        sink.persist_edges(5, ["bob", "carol", "bob"])

    written = [(call.args[0].follower_id, call.args[0].followee_handle) for call in batch.save.call_args_list]
    assert written == [(5, "bob"), (5, "carol")]
    assert sink.get_stats()["follows_written"] == 2


def test_empty_edges_skip_batch():
    sink = make_sink()

    with patch.object(FollowModel, "batch_write") as batch_write:
        sink.persist_edges(5, [])

    assert batch_write.call_count == 0


def test_batch_failure_becomes_persistence_error():
    sink = make_sink()

    with patch.object(FollowModel, "batch_write", side_effect=PutError("batch rejected")):
        with pytest.raises(PersistenceError):
            sink.persist_edges(5, ["bob"])
