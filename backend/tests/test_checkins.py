"""
Tests for the KR check-in ledger service.
"""
import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError, NotFoundError
from app.models.kr_checkin import KRCheckIn, CheckInPeriodType
from app.services.checkins import CheckInLedger


@pytest.fixture
def ledger(db_session: AsyncSession, registry, ticking_clock) -> CheckInLedger:
    return CheckInLedger(db_session, registry, clock=ticking_clock)


class TestAppendCheckIn:

    @pytest.mark.asyncio
    async def test_append(self, ledger: CheckInLedger):
        checkin = await ledger.append_checkin(
            kr_id="O1-KR1",
            year=2026,
            period_type=CheckInPeriodType.QUARTER,
            period_value="Q1",
            confidence=70,
            commentary="Two large contracts slipped to April",
        )
        assert checkin.id
        assert checkin.kr_id == "O1-KR1"
        assert checkin.confidence == 70
        assert checkin.period_type == CheckInPeriodType.QUARTER

    @pytest.mark.asyncio
    @pytest.mark.parametrize("confidence", [-1, 101, 250])
    async def test_confidence_out_of_range(self, ledger: CheckInLedger, confidence):
        with pytest.raises(ValidationError) as exc:
            await ledger.append_checkin("O1-KR1", 2026, CheckInPeriodType.MONTH, "3", confidence)
        assert exc.value.field == "confidence"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("confidence", [0, 100])
    async def test_confidence_bounds_are_inclusive(self, ledger: CheckInLedger, confidence):
        checkin = await ledger.append_checkin("O1-KR1", 2026, CheckInPeriodType.MONTH, "3", confidence)
        assert checkin.confidence == confidence

    @pytest.mark.asyncio
    async def test_non_integer_confidence(self, ledger: CheckInLedger):
        with pytest.raises(ValidationError):
            await ledger.append_checkin("O1-KR1", 2026, CheckInPeriodType.MONTH, "3", "high")

    @pytest.mark.asyncio
    async def test_unknown_kr(self, ledger: CheckInLedger):
        with pytest.raises(NotFoundError):
            await ledger.append_checkin("O9-KR9", 2026, CheckInPeriodType.MONTH, "3", 50)

    @pytest.mark.asyncio
    async def test_blank_period_value(self, ledger: CheckInLedger):
        with pytest.raises(ValidationError):
            await ledger.append_checkin("O1-KR1", 2026, CheckInPeriodType.MONTH, "  ", 50)


class TestLatestPerKR:

    @pytest.mark.asyncio
    async def test_two_appends_keep_both_rows_and_latest_wins(
        self, ledger: CheckInLedger, db_session: AsyncSession
    ):
        await ledger.append_checkin("O1-KR1", 2026, CheckInPeriodType.QUARTER, "Q1", 60)
        second = await ledger.append_checkin("O1-KR1", 2026, CheckInPeriodType.QUARTER, "Q1", 80)

        count = await db_session.scalar(
            select(func.count()).select_from(KRCheckIn).where(KRCheckIn.kr_id == "O1-KR1")
        )
        assert count == 2

        latest = await ledger.get_latest_per_kr(2026)
        assert latest["O1-KR1"].id == second.id
        assert latest["O1-KR1"].confidence == 80

    @pytest.mark.asyncio
    async def test_one_entry_per_kr(self, ledger: CheckInLedger):
        await ledger.append_checkin("O1-KR1", 2026, CheckInPeriodType.MONTH, "1", 50)
        await ledger.append_checkin("O2-KR1", 2026, CheckInPeriodType.MONTH, "1", 40)
        await ledger.append_checkin("O1-KR1", 2026, CheckInPeriodType.MONTH, "2", 55)

        latest = await ledger.get_latest_per_kr(2026)

        assert set(latest) == {"O1-KR1", "O2-KR1"}
        assert latest["O1-KR1"].period_value == "2"

    @pytest.mark.asyncio
    async def test_scoped_to_year(self, ledger: CheckInLedger):
        await ledger.append_checkin("O1-KR1", 2025, CheckInPeriodType.YEAR, "2025", 90)
        assert await ledger.get_latest_per_kr(2026) == {}
        assert set(await ledger.get_latest_per_kr(2025)) == {"O1-KR1"}


class TestListCheckIns:

    @pytest.mark.asyncio
    async def test_history_newest_first(self, ledger: CheckInLedger):
        for confidence in (30, 50, 70):
            await ledger.append_checkin("O3-KR1", 2026, CheckInPeriodType.MONTH, "4", confidence)

        history = await ledger.list_checkins("O3-KR1", 2026)

        assert [c.confidence for c in history] == [70, 50, 30]

    @pytest.mark.asyncio
    async def test_history_for_unknown_kr(self, ledger: CheckInLedger):
        with pytest.raises(NotFoundError):
            await ledger.list_checkins("nope")
