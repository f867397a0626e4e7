"""File-backed storage adapter.

Records live in memory and are written to ``<data_dir>/<resource>.db`` as
one JSON document per line. The file is rewritten through a temporary file
and an atomic rename before a mutation is committed in memory.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Dict, List, Union

from shared.adapters.base import Record, StorageBackend
from shared.adapters.memory import MemoryAdapter
from shared.errors import AdapterConnectionError


class FileAdapter(MemoryAdapter):
    """Durable local store persisted as JSON lines."""

    backend = StorageBackend.FILE

    def __init__(self, resource_name: str, filename: Union[str, Path]):
        super().__init__(resource_name)
        self.filename = Path(filename)

    async def connect(self) -> None:
        """Load existing records from disk."""
        try:
            records = await asyncio.to_thread(self._load)
        except (OSError, ValueError) as e:
            self.logger.error("Failed to load data file", filename=str(self.filename), error=str(e))
            raise AdapterConnectionError("file", str(e), {"filename": str(self.filename)})

        self._records = {record["_id"]: record for record in records}
        self.logger.info(
            "File store loaded",
            resource=self.resource_name,
            filename=str(self.filename),
            records=len(self._records)
        )

    def _load(self) -> List[Record]:
        self.filename.parent.mkdir(parents=True, exist_ok=True)
        if not self.filename.exists():
            return []

        records = []
        with self.filename.open("r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if line:
                    records.append(json.loads(line))
        return records

    async def _persist(self, records: Dict[str, Record]) -> None:
        snapshot = [dict(record) for record in records.values()]
        await asyncio.to_thread(self._write, snapshot)

    def _write(self, records: List[Record]) -> None:
        tmp_path = self.filename.with_name(self.filename.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as fh:
            for record in records:
                fh.write(json.dumps(record, default=str))
                fh.write("\n")
        os.replace(tmp_path, self.filename)

    async def health_check(self) -> bool:
        return self.filename.parent.is_dir()
