"""Tests for CarrierAllianceTable and RetryPolicy."""
from unittest.mock import AsyncMock

import pytest

from flightprice.services.alliances import CarrierAllianceTable
from flightprice.services.retry import FILTER_RETRY, RetryPolicy


class TestCarrierAllianceTable:
    def test_known_members(self):
        table = CarrierAllianceTable()
        assert table.alliance_for("UA") == "Star Alliance"
        assert table.alliance_for("QF") == "Oneworld"
        assert table.alliance_for("KE") == "SkyTeam"

    def test_lookup_is_case_insensitive(self):
        assert CarrierAllianceTable().alliance_for(" oz ") == "Star Alliance"

    def test_non_member(self):
        table = CarrierAllianceTable()
        assert not table.is_major_carrier("7C")  # Jeju Air
        assert table.alliance_for(None) is None

    def test_all_major_requires_every_code(self):
        table = CarrierAllianceTable()
        assert table.all_major(["KE", "DL"])
        assert not table.all_major(["KE", "7C"])
        assert not table.all_major([])

    def test_custom_table(self):
        table = CarrierAllianceTable({"Vanilla": ["VN"]})
        assert table.alliance_names == ["Vanilla"]
        assert not table.is_major_carrier("UA")


class TestRetryPolicy:
    def test_filter_policy_delays_double_and_cap(self):
        assert list(FILTER_RETRY.delays()) == [1.5, 3.0, 6.0, 8.0]

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=[RuntimeError("flaky"), "ok"])

        result = await RetryPolicy(max_attempts=3, initial_delay=1.0).run(operation, sleep=sleep)

        assert result == "ok"
        assert operation.await_count == 2
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_stops_at_max_attempts_and_reraises(self):
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=RuntimeError("always"))

        with pytest.raises(RuntimeError, match="always"):
            await FILTER_RETRY.run(operation, sleep=sleep)

        assert operation.await_count == 5
        assert [c.args[0] for c in sleep.await_args_list] == [1.5, 3.0, 6.0, 8.0]

    @pytest.mark.asyncio
    async def test_unlisted_errors_are_not_retried(self):
        operation = AsyncMock(side_effect=KeyError("fatal"))

        with pytest.raises(KeyError):
            await RetryPolicy(max_attempts=3).run(operation, retry_on=(RuntimeError,), sleep=AsyncMock())

        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_operation_receives_attempt_number(self):
        seen = []

        async def operation(attempt):
            seen.append(attempt)
            if attempt < 3:
                raise RuntimeError("again")
            return attempt

        assert await RetryPolicy(max_attempts=4).run(operation, sleep=AsyncMock()) == 3
        assert seen == [1, 2, 3]
