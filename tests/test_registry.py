"""
Tests for flowserve/runtime/registry.py - run registration, lookup and pruning.
"""

import re
from datetime import timedelta

import pytest

from flowserve.runtime.registry import DuplicateRunError, RunRegistry
from flowserve.runtime.types import generate_run_id, utc_now


# =============================================================================
# Registration
# =============================================================================


class TestRegistration:
    """Tests for register/get."""

    def test_register_and_get(self, make_run):
        registry = RunRegistry()
        run = make_run()
        registry.register(run)

        assert registry.get(run.run_id) is run
        assert run.run_id in registry
        assert len(registry) == 1

    def test_get_unknown_returns_none(self):
        registry = RunRegistry()

        assert registry.get("run-never-issued") is None
        assert "run-never-issued" not in registry

    def test_duplicate_id_rejected(self, make_run):
        registry = RunRegistry()
        first = make_run(run_id="run-dup")
        registry.register(first)

        with pytest.raises(DuplicateRunError):
            registry.register(make_run(run_id="run-dup"))
        assert registry.get("run-dup") is first

    def test_independent_registries(self, make_run):
        """Two registries never see each other's runs."""
        a, b = RunRegistry(), RunRegistry()
        run = make_run()
        a.register(run)

        assert b.get(run.run_id) is None

    def test_generated_ids_are_url_safe(self):
        ids = {generate_run_id() for _ in range(50)}

        assert len(ids) == 50
        for run_id in ids:
            assert re.fullmatch(r"run-\d{8}-\d{6}-[a-z0-9]{6}", run_id)

    def test_active_count(self, make_run):
        registry = RunRegistry()
        running, done = make_run(), make_run()
        done.finish()
        registry.register(running)
        registry.register(done)

        assert registry.active_count() == 1
        assert set(registry.list_runs()) == {running, done}


# =============================================================================
# Pruning
# =============================================================================


class TestPrune:
    """Tests for retention-based eviction."""

    def test_prune_disabled_by_default(self, make_run):
        registry = RunRegistry()
        run = make_run()
        run.finish()
        registry.register(run)

        assert registry.prune(now=utc_now() + timedelta(days=365)) == []
        assert run.run_id in registry

    def test_prune_evicts_expired_finished_runs(self, make_run):
        registry = RunRegistry(retention_seconds=60)
        expired, fresh, running = make_run(), make_run(), make_run()
        expired.finish()
        fresh.finish()
        expired.finished_at = utc_now() - timedelta(seconds=120)
        for run in (expired, fresh, running):
            registry.register(run)

        removed = registry.prune()

        assert removed == [expired.run_id]
        assert expired.run_id not in registry
        assert fresh.run_id in registry
        assert running.run_id in registry

    def test_prune_keeps_runs_with_active_consumer(self, make_run):
        import asyncio

        registry = RunRegistry(retention_seconds=0)
        run = make_run()
        run.publish_event("pending")
        run.finish()
        registry.register(run)

        async def scenario():
            consumer = run.event_queue.consume()
            await consumer.__anext__()
            kept = registry.prune(now=utc_now() + timedelta(seconds=10))
            await consumer.aclose()
            removed = registry.prune(now=utc_now() + timedelta(seconds=10))
            return kept, removed

        kept, removed = asyncio.run(scenario())

        assert kept == []
        assert removed == [run.run_id]

    def test_negative_retention_rejected(self):
        with pytest.raises(ValueError):
            RunRegistry(retention_seconds=-1)
