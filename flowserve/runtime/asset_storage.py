"""
asset_storage.py - Named binary artifacts produced by flow runs.

An asset is identified by (run_id, name) and carries its content type.
Flows write assets through ``FlowRun.store_asset``; the asset endpoint reads
them back with ``read_asset``.

Implementations:

    InMemoryAssetStorage   - process-local dict, for tests and demos
    FileSystemAssetStorage - files under <base_dir>/<run_id>/assets/

The filesystem layout is:

    <base_dir>/
      <run_id>/
        assets/
          <name>              # raw bytes
          <name>.meta.json    # {"content_type": ..., "size": ...}
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional, Protocol, Tuple, Union

if TYPE_CHECKING:
    from .flow_run import FlowRun

# Module logger
logger = logging.getLogger(__name__)

META_SUFFIX = ".meta.json"


@dataclass(frozen=True)
class Asset:
    """A named binary blob with a content type."""

    name: str
    data: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)


class AssetStorage(Protocol):
    """Stores and retrieves assets scoped to a run."""

    async def read_asset(self, *, run: "FlowRun", asset_name: str) -> Optional[Asset]:
        ...

    async def store_asset(self, *, run: "FlowRun", asset: Asset) -> None:
        ...


def is_valid_asset_name(name: str) -> bool:
    """Asset names are single path segments that do not start with a dot."""
    if not name or name.startswith("."):
        return False
    if "/" in name or "\\" in name or "\x00" in name:
        return False
    return not name.endswith(META_SUFFIX)


class InMemoryAssetStorage:
    """Keeps assets in a dict keyed by (run_id, name)."""

    def __init__(self) -> None:
        self._assets: Dict[Tuple[str, str], Asset] = {}

    async def read_asset(self, *, run: "FlowRun", asset_name: str) -> Optional[Asset]:
        return self._assets.get((run.run_id, asset_name))

    async def store_asset(self, *, run: "FlowRun", asset: Asset) -> None:
        if not is_valid_asset_name(asset.name):
            raise ValueError(f"Invalid asset name: {asset.name!r}")
        self._assets[(run.run_id, asset.name)] = asset


# -----------------------------------------------------------------------------
# Filesystem storage
# -----------------------------------------------------------------------------


def _atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write bytes to a file atomically (temp file + os.replace)."""
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(suffix=".tmp", prefix=path.name + ".", dir=parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class FileSystemAssetStorage:
    """Stores assets as files under ``<base_dir>/<run_id>/assets``."""

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)

    def assets_dir(self, run_id: str) -> Path:
        return self.base_dir / run_id / "assets"

    async def read_asset(self, *, run: "FlowRun", asset_name: str) -> Optional[Asset]:
        if not is_valid_asset_name(asset_name):
            logger.warning("Rejected asset name %r for run '%s'", asset_name, run.run_id)
            return None
        return await asyncio.to_thread(self._read, run.run_id, asset_name)

    async def store_asset(self, *, run: "FlowRun", asset: Asset) -> None:
        if not is_valid_asset_name(asset.name):
            raise ValueError(f"Invalid asset name: {asset.name!r}")
        await asyncio.to_thread(self._write, run.run_id, asset)

    def _read(self, run_id: str, asset_name: str) -> Optional[Asset]:
        data_path = self.assets_dir(run_id) / asset_name
        meta_path = data_path.with_name(asset_name + META_SUFFIX)
        if not data_path.is_file() or not meta_path.is_file():
            return None

        try:
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
            data = data_path.read_bytes()
        except json.JSONDecodeError as e:
            logger.warning("Corrupt asset metadata for run '%s' at %s: %s", run_id, meta_path, e)
            return None
        except OSError as e:
            logger.warning("Failed to read asset for run '%s' at %s: %s", run_id, data_path, e)
            return None

        return Asset(
            name=asset_name,
            data=data,
            content_type=meta.get("content_type", "application/octet-stream"),
        )

    def _write(self, run_id: str, asset: Asset) -> None:
        data_path = self.assets_dir(run_id) / asset.name
        meta = {"content_type": asset.content_type, "size": asset.size}
        _atomic_write_bytes(data_path, asset.data)
        _atomic_write_bytes(
            data_path.with_name(asset.name + META_SUFFIX),
            json.dumps(meta, indent=2).encode("utf-8"),
        )
        logger.debug("Stored asset '%s' (%d bytes) for run '%s'", asset.name, asset.size, run_id)
