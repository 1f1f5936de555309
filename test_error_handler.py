"""Tests for traversal error classification."""

import asyncio

import aiohttp
import pytest
from app.follow_crawler.core.exceptions import FetchError, PersistenceError, ProfileParseError
from app.follow_crawler.core.types import CrawlErrorType, CrawlStage
from app.follow_crawler.traversal import TraversalErrorHandler
from app.schema.people import ProfileAttributes
from pydantic import ValidationError


def make_validation_error():
    try:
        ProfileAttributes.model_validate({"content_count": -1})
    except ValidationError as e:
        return e
    raise AssertionError("expected a validation error")


@pytest.mark.parametrize(
    "error, expected",
    [
        (FetchError("alice", "HTTP 404", status_code=404), CrawlErrorType.FETCH_ERROR),
        (ProfileParseError("alice", "missing track count"), CrawlErrorType.PARSE_ERROR),
        (make_validation_error(), CrawlErrorType.PARSE_ERROR),
        (asyncio.TimeoutError(), CrawlErrorType.TIMEOUT),
        (aiohttp.ClientConnectionError("refused"), CrawlErrorType.CONNECTION_ERROR),
        (ConnectionResetError("reset"), CrawlErrorType.CONNECTION_ERROR),
        (KeyError("boom"), CrawlErrorType.UNKNOWN),
    ],
)
def test_fetch_errors_classified_by_type(error, expected):
    classification = TraversalErrorHandler().classify_error(error, CrawlStage.FETCH_PROFILE)

    assert classification.error_type == expected
    assert classification.abandons_identity is True


def test_sink_errors_are_persistence_errors():
    handler = TraversalErrorHandler()

    assert handler.classify_error(KeyError("x"), CrawlStage.PERSIST_IDENTITY).error_type == (
        CrawlErrorType.PERSISTENCE_ERROR
    )
    assert handler.classify_error(PersistenceError("disk full"), CrawlStage.PERSIST_IDENTITY).error_type == (
        CrawlErrorType.PERSISTENCE_ERROR
    )
    assert handler.classify_error(asyncio.TimeoutError(), CrawlStage.PERSIST_IDENTITY).error_type == (
        CrawlErrorType.TIMEOUT
    )


def test_edge_persistence_failure_does_not_abandon():
    classification = TraversalErrorHandler().classify_error(
        PersistenceError("edge table unavailable"), CrawlStage.PERSIST_EDGES
    )

    assert classification.abandons_identity is False
    assert classification.error_type == CrawlErrorType.PERSISTENCE_ERROR


def test_handle_error_counts_by_type_and_stage():
    handler = TraversalErrorHandler()

    handler.handle_error(FetchError("a", "HTTP 500"), "a", CrawlStage.FETCH_PROFILE, worker_id=1)
    handler.handle_error(FetchError("b", "HTTP 500"), "b", CrawlStage.FETCH_EDGES, worker_id=2)
    handler.handle_error(PersistenceError("down"), "c", CrawlStage.PERSIST_EDGES)

    stats = handler.get_stats()
    assert stats["errors_handled"] == 3
    assert stats["identities_abandoned"] == 2
    assert stats["errors_by_type"] == {"fetch_error": 2, "persistence_error": 1}
    assert stats["errors_by_stage"] == {"fetch_profile": 1, "fetch_edges": 1, "persist_edges": 1}

    handler.reset_stats()
    assert handler.get_stats()["errors_handled"] == 0
