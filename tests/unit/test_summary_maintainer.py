"""Unit tests for SummaryMaintainer strategy selection and error handling."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from showtally.errors import SummaryError, TransientIngestError
from showtally.services.summary_maintainer import SummaryHealth, SummaryMaintainer, chunked
from showtally.utils.keys import LogicalKey

KEY = LogicalKey(
    start_time=datetime(2026, 3, 14, 19, 30, tzinfo=timezone.utc),
    cinema_name="Roxy",
    movie_title="Dune",
    attributes=("IMAX",),
)


def make_db() -> AsyncMock:
    db = AsyncMock()
    db.bind = None
    return db


def make_rows_result(rows: list) -> MagicMock:
    r = MagicMock()
    r.all.return_value = rows
    return r


def group_row(representative_id: int) -> SimpleNamespace:
    return SimpleNamespace(
        representative_id=representative_id,
        observations=1,
        start_time=KEY.start_time,
        cinema_name=f"Cinema {representative_id}",
        movie_title=KEY.movie_title,
        attributes=list(KEY.attributes),
        city="",
    )


class TestRefresh:
    async def test_no_showtimes_is_a_no_op(self) -> None:
        db = make_db()

        written = await SummaryMaintainer("incremental").refresh(db, set())

        assert written == 0
        db.execute.assert_not_awaited()

    async def test_full_strategy_rebuilds(self) -> None:
        maintainer = SummaryMaintainer("full")
        maintainer.rebuild = AsyncMock(return_value=5)
        db = make_db()

        written = await maintainer.refresh(db, {1})

        assert written == 5
        maintainer.rebuild.assert_awaited_once_with(db)

    async def test_incremental_deletes_then_recomputes(self) -> None:
        db = make_db()
        db.execute = AsyncMock(side_effect=[MagicMock(), make_rows_result([]), MagicMock()])

        written = await SummaryMaintainer("incremental").refresh(db, {1})

        assert written == 0
        delete_stmt = db.execute.await_args_list[0].args[0]
        assert str(delete_stmt.compile()).startswith("DELETE FROM showtime_summaries")

    async def test_summary_unique_violation_is_transient(self) -> None:
        db = make_db()
        db.execute = AsyncMock(
            side_effect=IntegrityError("INSERT", {}, Exception("uq_showtime_summaries_representative_id"))
        )

        with pytest.raises(TransientIngestError):
            await SummaryMaintainer("incremental").refresh(db, {1})

    async def test_other_integrity_errors_are_fatal(self) -> None:
        db = make_db()
        db.execute = AsyncMock(
            side_effect=IntegrityError(
                "INSERT", {}, Exception("FOREIGN KEY constraint failed")
            )
        )

        with pytest.raises(SummaryError):
            await SummaryMaintainer("incremental").refresh(db, {1})

    async def test_serialization_failure_is_transient(self) -> None:
        orig = Exception("could not serialize access")
        orig.sqlstate = "40001"
        db = make_db()
        db.execute = AsyncMock(side_effect=OperationalError("DELETE", {}, orig))

        with pytest.raises(TransientIngestError):
            await SummaryMaintainer("incremental").refresh(db, {1})

    async def test_other_database_errors_are_fatal(self) -> None:
        db = make_db()
        db.execute = AsyncMock(side_effect=OperationalError("DELETE", {}, Exception("disk full")))

        with pytest.raises(SummaryError):
            await SummaryMaintainer("incremental").refresh(db, {1})


class TestInvalidate:
    async def test_nothing_to_invalidate(self) -> None:
        db = make_db()

        assert await SummaryMaintainer().invalidate(db, []) == 0
        db.execute.assert_not_awaited()

    async def test_returns_deleted_count(self) -> None:
        db = make_db()
        result = MagicMock()
        result.rowcount = 1
        db.execute = AsyncMock(return_value=result)

        assert await SummaryMaintainer().invalidate(db, [7]) == 1


class TestSummaryHealth:
    def test_healthy_when_no_problems(self) -> None:
        assert SummaryHealth(showtimes=3, showings=3, summaries=3).healthy

    @pytest.mark.parametrize("problem", ["stale", "missing", "duplicated", "miscounted"])
    def test_any_problem_is_unhealthy(self, problem: str) -> None:
        assert not SummaryHealth(**{problem: 1}).healthy


class TestBatching:
    def test_chunked_splits_into_fixed_sizes(self) -> None:
        assert [list(c) for c in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]
        assert list(chunked([], 2)) == []

    async def test_incremental_refresh_works_in_chunks_of_ids(self) -> None:
        db = make_db()
        db.execute = AsyncMock(return_value=make_rows_result([]))

        await SummaryMaintainer("incremental", batch_size=2).refresh(db, {5, 4, 3, 2, 1})

        statements = [c.args[0] for c in db.execute.await_args_list]
        deletes = [s for s in statements if str(s.compile()).startswith("DELETE")]
        assert len(deletes) == 3
        assert len(statements) == 6

    async def test_rebuild_upserts_in_chunks(self) -> None:
        rows = [group_row(i) for i in range(1, 6)]
        db = make_db()
        db.execute = AsyncMock(side_effect=[MagicMock(), make_rows_result(rows)] + [MagicMock()] * 3)

        written = await SummaryMaintainer("full", batch_size=2).rebuild(db)

        assert written == 5
        inserts = [c.args[0] for c in db.execute.await_args_list[2:]]
        assert len(inserts) == 3
        assert all(str(s.compile()).startswith("INSERT INTO showtime_summaries") for s in inserts)

    async def test_invalidate_sums_deleted_rows_across_chunks(self) -> None:
        db = make_db()
        result = MagicMock()
        result.rowcount = 2
        db.execute = AsyncMock(return_value=result)

        deleted = await SummaryMaintainer(batch_size=2).invalidate(db, [1, 2, 3, 4])

        assert deleted == 4
        assert db.execute.await_count == 2
