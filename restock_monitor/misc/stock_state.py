"""Inventory item type and helpers for summarizing one poll's snapshot."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class InventoryItem:
    """One extracted (name, quantity) pair."""

    name: str
    quantity: int

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("inventory item name must be non-empty")
        if self.quantity < 0:
            raise ValueError(f"inventory quantity must be non-negative, got {self.quantity}")

    @property
    def in_stock(self) -> bool:
        return self.quantity > 0

    def to_public(self) -> dict[str, Any]:
        """Shape used by the status endpoint."""
        return {"name": self.name, "count": self.quantity}


Snapshot = Sequence[InventoryItem]


def has_stock(snapshot: Iterable[InventoryItem]) -> bool:
    return any(item.in_stock for item in snapshot)


def in_stock_items(snapshot: Iterable[InventoryItem]) -> tuple[InventoryItem, ...]:
    """Return the in-stock subset, preserving page order."""
    return tuple(item for item in snapshot if item.in_stock)


def count_stock_states(snapshot: Iterable[InventoryItem]) -> dict[str, int]:
    """Count stock states in one pass for log lines and reports."""
    counts = {"total": 0, "in_stock": 0, "out_of_stock": 0}
    for item in snapshot:
        counts["total"] += 1
        if item.in_stock:
            counts["in_stock"] += 1
        else:
            counts["out_of_stock"] += 1
    return counts


def describe_snapshot(snapshot: Iterable[InventoryItem]) -> str:
    """Render `name(qty)` pairs for audit logging."""
    return ", ".join(f"{item.name}({item.quantity})" for item in snapshot)
