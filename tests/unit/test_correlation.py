"""
Unit tests for correlation module.

Tests per-event id generation and scoping.
"""

import asyncio

import pytest

from tradfri2mqtt.correlation import current_event_id, event_context, new_event_id


class TestEventIds:
    def test_new_ids_are_unique_hex(self):
        first, second = new_event_id(), new_event_id()

        assert first != second
        assert len(first) == 32
        _ = int(first, 16)

    def test_no_id_outside_context(self):
        assert current_event_id() is None

    def test_context_binds_and_restores(self):
        with event_context() as outer:
            assert current_event_id() == outer
            with event_context("inner-id") as inner:
                assert inner == "inner-id"
                assert current_event_id() == "inner-id"
            assert current_event_id() == outer
        assert current_event_id() is None

    def test_restored_after_exception(self):
        with pytest.raises(RuntimeError), event_context("boom"):
            raise RuntimeError

        assert current_event_id() is None

    @pytest.mark.asyncio
    async def test_ids_are_task_local(self):
        """Concurrent tasks each see their own id"""
        seen: dict[str, str | None] = {}

        async def worker(name: str) -> None:
            with event_context(name):
                await asyncio.sleep(0)
                seen[name] = current_event_id()

        _ = await asyncio.gather(worker("a"), worker("b"))

        assert seen == {"a": "a", "b": "b"}
