"""Extracts (name, quantity) inventory items from a product-card listing page."""

from __future__ import annotations

import re
from dataclasses import dataclass

from bs4 import BeautifulSoup

from restock_monitor.misc.stock_state import InventoryItem

DEFAULT_QUANTITY_PATTERN = r"[:：(]?\s*(\d+)"


@dataclass(frozen=True, slots=True)
class SelectorRules:
    """CSS selector triple plus the regex that pulls the count out of the quantity text."""

    card: str = ".card.cartitem"
    name: str = "h4"
    quantity: str = "p.card-text"
    quantity_pattern: str = DEFAULT_QUANTITY_PATTERN
    quantity_keyword: str = ""


def bs4_text(node: object) -> str:
    """Extract text from a BeautifulSoup node."""
    return str(node.get_text(" ", strip=True)) if hasattr(node, "get_text") else ""


def _quantity_text(card: object, rules: SelectorRules) -> str:
    nodes = card.select(rules.quantity) if hasattr(card, "select") else []
    keyword = rules.quantity_keyword.lower()
    texts = [bs4_text(node) for node in nodes]
    if keyword:
        texts = [text for text in texts if keyword in text.lower()]
    return " ".join(text for text in texts if text)


def extract_inventory(html: str, rules: SelectorRules) -> list[InventoryItem]:
    """Return inventory items in page order.

    Cards without a name or without a parsable count are skipped, so a page
    whose markup no longer matches yields an empty list rather than zeros.
    """
    if not html:
        return []

    soup = BeautifulSoup(html, "lxml")
    pattern = re.compile(rules.quantity_pattern, re.IGNORECASE)
    items: list[InventoryItem] = []
    for card in soup.select(rules.card):
        name_node = card.select_one(rules.name)
        name = re.sub(r"\s+", " ", bs4_text(name_node)).strip()
        if not name:
            continue
        match = pattern.search(_quantity_text(card, rules))
        if not match:
            continue
        items.append(InventoryItem(name=name, quantity=int(match.group(1))))
    return items

