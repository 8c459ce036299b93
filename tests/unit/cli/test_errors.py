"""Tests for docquarry CLI error messages."""

from __future__ import annotations

import pytest

from docquarry.cli.errors import (
    err_config,
    err_no_sources,
    err_not_a_directory,
    err_source_not_found,
    message_for,
)
from docquarry.errors import (
    EmbeddingProviderError,
    IndexerError,
    SearchError,
    SourceRegistryError,
    StorageError,
)


@pytest.mark.parametrize(
    "message",
    [
        err_not_a_directory("/x"),
        err_source_not_found("abc"),
        err_no_sources(),
        err_config("bad value"),
    ],
)
def test_messages_name_an_action(message):
    # every message says what to do next
    assert "\n  " in message


def test_message_for_not_found():
    msg = message_for(SourceRegistryError("Source not found: abc"), "abc")
    assert "Source not found: 'abc'" in msg


def test_message_for_removed():
    msg = message_for(IndexerError("removed", "SOURCE_REMOVED"), "abc")
    assert "has been removed" in msg


def test_message_for_missing_api_key():
    exc = EmbeddingProviderError("Set the OPENAI_API_KEY environment variable.", "EMBEDDING_API_KEY_MISSING")
    assert "OPENAI_API_KEY" in message_for(exc)


def test_message_for_search_error():
    assert "Document search failed" in message_for(SearchError("x"))


def test_message_for_other_errors_show_code():
    msg = message_for(StorageError("disk gone"))
    assert "disk gone" in msg
    assert "STORAGE_ERROR" in msg
