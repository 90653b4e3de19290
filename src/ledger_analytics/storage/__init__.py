# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from ledger_analytics.storage.file import FileLedgerStore
from ledger_analytics.storage.interface import BudgetStore, LedgerStore, call_store
from ledger_analytics.storage.memory import MemoryBudgetStore, MemoryLedgerStore

__all__ = [
    "BudgetStore",
    "FileLedgerStore",
    "LedgerStore",
    "MemoryBudgetStore",
    "MemoryLedgerStore",
    "call_store",
]
