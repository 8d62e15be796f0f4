"""
Integration tests for a multi-day study flow.

Drives LeitnerEngine end to end over a JSON file backend, reopening the
engine between steps the way a host process restart would.

Run: pytest tests/integration/test_study_flow.py -v
"""

import json
import random

import pytest

from src.leitner.engine import LeitnerEngine
from src.leitner.migration import migrate_storage
from src.leitner.storage import PROGRESS_KEY, SCHEMA_VERSION_KEY, JsonFileStorage


@pytest.fixture
def storage_path(tmp_path):
    return tmp_path / "leitner" / "storage.json"


@pytest.fixture
def open_engine(storage_path, settings, clock):
    """Open a fresh engine over the same file, as a restarted host would."""

    def factory() -> LeitnerEngine:
        storage = JsonFileStorage(storage_path)
        migrate_storage(storage)
        return LeitnerEngine(storage, settings, clock=clock, rng=random.Random(5))

    return factory


class TestStudyFlow:
    """A learner studying across restarts and days."""

    @pytest.mark.asyncio
    async def test_session_survives_restart(self, open_engine, catalog):
        async with open_engine() as engine:
            items = await engine.load_session(catalog)
            engine.submit_answer(items[0].id, [2], True)
            engine.submit_answer(items[1].id, [0], False)

        async with open_engine() as engine:
            restored = await engine.load_session(catalog)

            assert [i.id for i in restored] == [i.id for i in items]
            assert engine.sessions.submissions[items[0].id].is_correct
            assert engine.get_question_progress(items[0].id).current_box == 2
            assert engine.get_question_progress(items[1].id).times_incorrect == 1

    @pytest.mark.asyncio
    async def test_expired_session_regenerated(self, open_engine, catalog, clock):
        async with open_engine() as engine:
            items = await engine.load_session(catalog)
            for item in items:
                engine.submit_answer(item.id, [0], True)

        clock.advance(hours=5)

        async with open_engine() as engine:
            fresh = await engine.load_session(catalog)
            answered = {i.id for i in items}
            # Ten unanswered items remain; backfill tops the due set up to twenty
            assert len(fresh) == 20
            assert len({i.id for i in fresh} - answered) == 10

    @pytest.mark.asyncio
    async def test_items_come_due_again(self, open_engine, catalog, clock):
        async with open_engine() as engine:
            await engine.get_due_questions(catalog)
            engine.process_answer("q00", True)
            engine.process_answer("q01", False)

        clock.advance(days=1)
        async with open_engine() as engine:
            due = {s.id: s for s in await engine.get_due_questions(catalog)}
            assert due["q01"].is_due
            assert "q00" not in due

        clock.advance(days=1)
        async with open_engine() as engine:
            due = {s.id: s for s in await engine.get_due_questions(catalog)}
            assert due["q00"].is_due
            assert due["q00"].current_box == 2

    @pytest.mark.asyncio
    async def test_streak_across_days(self, open_engine, catalog, clock):
        for day in range(3):
            async with open_engine() as engine:
                await engine.get_due_questions(catalog)
                engine.process_answer(f"q{day:02d}", True)
            clock.advance(days=1)

        async with open_engine() as engine:
            stats = await engine.get_stats(catalog)
            assert stats.streak_days == 3
            history = await engine.get_daily_activity_history()
            assert list(history.values()) == [1, 1, 1]

    @pytest.mark.asyncio
    async def test_full_round_then_new_session(self, open_engine, catalog):
        async with open_engine() as engine:
            items = await engine.load_session(catalog)
            for index, item in enumerate(items):
                engine.submit_answer(item.id, [0], index % 2 == 0)
            results = engine.end_session()
            assert (results.correct, results.incorrect, results.total) == (10, 10, 20)

            fresh = await engine.start_new_session(catalog)
            assert len(fresh) == 20
            assert engine.sessions.submissions == {}

    @pytest.mark.asyncio
    async def test_reset_then_restart(self, open_engine, catalog, storage_path):
        async with open_engine() as engine:
            await engine.load_session(catalog)
            engine.process_answer("q00", True)
            engine.set_daily_target(30)
            engine.clear_all_progress()

        async with open_engine() as engine:
            assert engine.get_question_progress("q00") is None
            assert engine.get_daily_target() == 30

        data = json.loads(storage_path.read_text(encoding="utf-8"))
        assert PROGRESS_KEY not in data
        assert data[SCHEMA_VERSION_KEY] == "2"
