"""Tests for the single-settlement guard."""

import asyncio

import pytest

from latprobe.errors import Timeout
from latprobe.settle import Settlement


class TestSettlement:
    """First writer wins; later events are discarded."""

    def test_resolve_then_reject_is_ignored(self):
        """Test a late error after success does not change the outcome."""

        async def scenario():
            outcome = Settlement("test")
            assert outcome.resolve(12.5) is True
            assert outcome.reject(Timeout("late")) is False
            return await outcome

        assert asyncio.run(scenario()) == 12.5

    def test_reject_then_resolve_is_ignored(self):
        """Test a late open event after a timeout does not change the outcome."""

        async def scenario():
            outcome = Settlement("test")
            assert outcome.reject(Timeout("first")) is True
            assert outcome.resolve(1.0) is False
            assert outcome.settled is True
            await outcome

        with pytest.raises(Timeout, match="first"):
            asyncio.run(scenario())

    def test_racing_timer_and_result(self):
        """Test a timer and a result racing on the loop settle exactly once."""

        async def scenario():
            loop = asyncio.get_running_loop()
            outcome = Settlement("race")
            accepted = []
            loop.call_later(0.01, lambda: accepted.append(outcome.resolve("open")))
            loop.call_later(0.015, lambda: accepted.append(outcome.reject(Timeout("timer"))))
            value = await outcome
            await asyncio.sleep(0.02)
            return value, accepted

        value, accepted = asyncio.run(scenario())
        assert value == "open"
        assert accepted == [True, False]

    def test_unsettled_by_default(self):
        """Test a fresh settlement is pending."""

        async def scenario():
            return Settlement().settled

        assert asyncio.run(scenario()) is False
