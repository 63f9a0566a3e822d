"""File-based persistence for the trip snapshot and itinerary exports."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..config import settings


class FileStorage:
    """Thin wrapper around the data root for storing the trip snapshot and exports."""

    def __init__(self, root: Path | None = None, snapshot_filename: str | None = None) -> None:
        self.root = (root or settings.data_root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.output_root = self.root / "outputs"
        self.snapshot_path = self.root / (snapshot_filename or settings.snapshot_filename)

    def make_run_directory(self, prefix: str = "trip") -> Path:
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        path = self.output_root / f"{prefix}_{timestamp}"
        path.mkdir(parents=True, exist_ok=False)
        return path

    def write_json(self, path: Path, data: Any, *, indent: int = 2) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, indent=indent)

    def write_csv(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="") as handle:
            handle.write(content)

    def save_trip_snapshot(self, snapshot: dict[str, Any]) -> Path:
        """Write the snapshot through a temporary file so a crash never leaves half a file."""

        tmp_path = self.snapshot_path.with_suffix(self.snapshot_path.suffix + ".tmp")
        self.write_json(tmp_path, snapshot)
        os.replace(tmp_path, self.snapshot_path)
        return self.snapshot_path

    def load_trip_snapshot(self) -> Optional[dict[str, Any]]:
        if not self.snapshot_path.exists():
            return None
        with self.snapshot_path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
