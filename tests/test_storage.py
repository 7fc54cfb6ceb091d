"""
Tests for flowserve/runtime/asset_storage.py and run_logger.py.

Filesystem layouts:
    <base>/<run_id>/assets/<name> (+ <name>.meta.json)
    <base>/<run_id>/logs/errors.jsonl
"""

import asyncio
import json
import logging

import pytest

from flowserve.runtime.asset_storage import (
    Asset,
    FileSystemAssetStorage,
    InMemoryAssetStorage,
    is_valid_asset_name,
)
from flowserve.runtime.run_logger import (
    CompositeRunLogger,
    FileSystemRunLogger,
    StdlibRunLogger,
)


# -----------------------------------------------------------------------------
# Asset names
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("name", ["cover.png", "story.mp3", "a", "image-01.jpeg"])
def test_valid_asset_names(name):
    assert is_valid_asset_name(name)


@pytest.mark.parametrize("name", ["", ".hidden", "..", "../etc/passwd", "a/b", "a\\b", "x.meta.json"])
def test_invalid_asset_names(name):
    assert not is_valid_asset_name(name)


# -----------------------------------------------------------------------------
# Asset storage
# -----------------------------------------------------------------------------


class TestInMemoryAssetStorage:
    def test_store_and_read(self, make_run):
        storage = InMemoryAssetStorage()
        run, other = make_run(), make_run()

        async def scenario():
            await storage.store_asset(run=run, asset=Asset("cover", b"abc", "image/png"))
            return (
                await storage.read_asset(run=run, asset_name="cover"),
                await storage.read_asset(run=other, asset_name="cover"),
            )

        found, missing = asyncio.run(scenario())

        assert found == Asset("cover", b"abc", "image/png")
        assert missing is None

    def test_invalid_name_rejected(self, make_run):
        storage = InMemoryAssetStorage()

        with pytest.raises(ValueError):
            asyncio.run(storage.store_asset(run=make_run(), asset=Asset("../x", b"", "text/plain")))


class TestFileSystemAssetStorage:
    def test_store_and_read(self, tmp_path, make_run):
        storage = FileSystemAssetStorage(tmp_path)
        run = make_run()
        data = bytes(range(256)) * 4

        async def scenario():
            await storage.store_asset(run=run, asset=Asset("cover.png", data, "image/png"))
            return await storage.read_asset(run=run, asset_name="cover.png")

        asset = asyncio.run(scenario())

        assert asset.data == data
        assert asset.content_type == "image/png"
        assert asset.size == 1024

        asset_dir = tmp_path / run.run_id / "assets"
        assert (asset_dir / "cover.png").read_bytes() == data
        meta = json.loads((asset_dir / "cover.png.meta.json").read_text())
        assert meta == {"content_type": "image/png", "size": 1024}

    def test_missing_asset(self, tmp_path, make_run):
        storage = FileSystemAssetStorage(tmp_path)

        assert asyncio.run(storage.read_asset(run=make_run(), asset_name="nope")) is None

    def test_traversal_name_not_found(self, tmp_path, make_run):
        storage = FileSystemAssetStorage(tmp_path / "runs")
        (tmp_path / "secret").write_text("x")

        assert asyncio.run(storage.read_asset(run=make_run(), asset_name="..")) is None

    def test_corrupt_metadata(self, tmp_path, make_run):
        storage = FileSystemAssetStorage(tmp_path)
        run = make_run()
        asset_dir = tmp_path / run.run_id / "assets"
        asset_dir.mkdir(parents=True)
        (asset_dir / "cover.png").write_bytes(b"abc")
        (asset_dir / "cover.png.meta.json").write_text("{not json")

        assert asyncio.run(storage.read_asset(run=run, asset_name="cover.png")) is None


# -----------------------------------------------------------------------------
# Run loggers
# -----------------------------------------------------------------------------


class TestRunLoggers:
    def test_filesystem_logger_appends_jsonl(self, tmp_path, make_run):
        run_logger = FileSystemRunLogger(tmp_path)
        run = make_run()

        run_logger.log_error(run=run, message="Failed to process flow", error=RuntimeError("boom"))
        run_logger.log_error(run=run, message="Asset x not found", error=KeyError("x"))

        lines = run_logger.errors_path(run.run_id).read_text().splitlines()
        records = [json.loads(line) for line in lines]

        assert [r["message"] for r in records] == ["Failed to process flow", "Asset x not found"]
        assert records[0]["run_id"] == run.run_id
        assert records[0]["error_type"] == "RuntimeError"
        assert records[0]["error"] == "boom"
        assert records[0]["timestamp"].endswith("Z")

    def test_filesystem_logger_never_raises(self, tmp_path, make_run):
        blocker = tmp_path / "blocked"
        blocker.write_text("not a directory")
        run_logger = FileSystemRunLogger(blocker)

        run_logger.log_error(run=make_run(), message="m", error=RuntimeError("e"))

    def test_stdlib_logger(self, caplog, make_run):
        run = make_run()

        with caplog.at_level(logging.ERROR, logger="flowserve.runs"):
            StdlibRunLogger().log_error(run=run, message="Failed to process flow", error=RuntimeError("boom"))

        assert run.run_id in caplog.text
        assert "Failed to process flow" in caplog.text

    def test_errors_without_run(self, tmp_path, caplog):
        """Errors not tied to a known run reach stdlib logging and skip the run files."""
        error = LookupError("Run 'run-x' not found")

        with caplog.at_level(logging.WARNING):
            StdlibRunLogger().log_error(run=None, message="Run 'run-x' not found", error=error)
            FileSystemRunLogger(tmp_path).log_error(run=None, message="Run 'run-x' not found", error=error)

        assert "[-] Run 'run-x' not found" in caplog.text
        assert "Dropping run error without a run" in caplog.text
        assert list(tmp_path.iterdir()) == []

    def test_composite_logger_fans_out(self, make_run, run_logger):
        from conftest import RecordingRunLogger

        other = RecordingRunLogger()
        composite = CompositeRunLogger(run_logger, other)

        composite.log_error(run=make_run(), message="m", error=RuntimeError("e"))

        assert len(run_logger.errors) == 1
        assert len(other.errors) == 1
