# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Append-only NDJSON ledger backend.

Transactions are stored one JSON object per line and the file is never
rewritten. Every query re-reads the whole file so the view stays consistent
with records appended by other processes.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable

import aiofiles
from pydantic import ValidationError

from ledger_analytics.query import filter_transactions
from ledger_analytics.storage.interface import LedgerStore
from ledger_analytics.types import AnalyticsQuery, Category, DateRange, Transaction

logger = logging.getLogger("ledger_analytics.storage.file")


class FileLedgerStore(LedgerStore):
    """
    Persistent, append-only ledger backed by an NDJSON file.

    Parameters
    ----------
    file_path:
        Path to the NDJSON file. It is created on the first append.
    categories:
        Reference categories served by :meth:`list_categories`.
    """

    def __init__(self, file_path: str | Path, categories: Iterable[Category] = ()) -> None:
        self._file_path = Path(file_path)
        self._categories = {c.id: c for c in categories}

    @property
    def file_path(self) -> Path:
        return self._file_path

    async def append(self, transaction: Transaction) -> None:
        line = json.dumps(transaction.model_dump(mode="json")) + "\n"
        async with aiofiles.open(self._file_path, mode="a", encoding="utf-8") as file_handle:
            await file_handle.write(line)

    async def all(self) -> list[Transaction]:
        if not self._file_path.exists():
            return []

        records: list[Transaction] = []
        async with aiofiles.open(self._file_path, mode="r", encoding="utf-8") as file_handle:
            line_number = 0
            async for line in file_handle:
                line_number += 1
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    records.append(Transaction.model_validate(json.loads(stripped)))
                except (json.JSONDecodeError, ValidationError) as exc:
                    logger.warning(
                        "ledger_line_skipped",
                        extra={"path": str(self._file_path), "line": line_number, "error": str(exc)},
                    )
        return records

    async def query_transactions(
        self,
        user_id: str,
        date_range: DateRange,
        query: AnalyticsQuery | None = None,
    ) -> list[Transaction]:
        return filter_transactions(await self.all(), user_id, date_range, query)

    def add_category(self, category: Category) -> None:
        self._categories[category.id] = category

    async def list_categories(self, user_id: str) -> list[Category]:
        return list(self._categories.values())
