"""Tests for event_forwarder.classifier (DeletionClassifier)."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from event_forwarder.classifier import DeletionClassifier


class TestDeletionClassifier:
    @pytest.mark.asyncio
    async def test_inbox_item_is_not_discarded(self, provider, message_factory):
        classifier = DeletionClassifier(provider)
        assert await classifier.is_discarded(message_factory()) is False

    @pytest.mark.asyncio
    async def test_item_in_deleted_items(self, provider, message_factory):
        provider.discard("msg-001")
        classifier = DeletionClassifier(provider)
        assert await classifier.is_discarded(message_factory()) is True

    @pytest.mark.asyncio
    async def test_meeting_request_in_deleted_items(self, provider, meeting_factory):
        provider.discard("mtg-001")
        classifier = DeletionClassifier(provider)
        assert await classifier.is_discarded(meeting_factory()) is True

    @pytest.mark.asyncio
    async def test_folder_lookup_failure_fails_open(self, provider, message_factory):
        provider.folder_error = LookupError("item vanished")
        classifier = DeletionClassifier(provider)
        assert await classifier.is_discarded(message_factory()) is False

    @pytest.mark.asyncio
    async def test_discarded_folder_lookup_failure_fails_open(self, provider, message_factory):
        provider.discard("msg-001")
        provider.discarded_folder_id = AsyncMock(side_effect=TimeoutError())
        classifier = DeletionClassifier(provider)
        assert await classifier.is_discarded(message_factory()) is False

    @pytest.mark.asyncio
    async def test_empty_folder_id_is_not_discarded(self, provider, message_factory):
        provider.folder_id_of = AsyncMock(return_value="")
        provider.discarded_folder_id = AsyncMock(return_value="")
        classifier = DeletionClassifier(provider)
        assert await classifier.is_discarded(message_factory()) is False
