from __future__ import annotations

from restock_monitor.misc.stock_state import InventoryItem
from restock_monitor.parsers.card_parser import SelectorRules, extract_inventory

CART_HTML = """
<html><body>
  <div class="card cartitem">
    <h4>  HK  Lite  </h4>
    <p class="card-text">CPU: 1 core</p>
    <p class="card-text">inventory：0</p>
  </div>
  <div class="card cartitem">
    <h4>JP Pro</h4>
    <p class="card-text">inventory: 12</p>
  </div>
  <div class="card cartitem">
    <h4></h4>
    <p class="card-text">inventory: 5</p>
  </div>
  <div class="card cartitem">
    <h4>No Count</h4>
    <p class="card-text">contact sales</p>
  </div>
</body></html>
"""


def test_extract_inventory_with_keyword_rules() -> None:
    rules = SelectorRules(quantity_pattern=r"inventory\s*[：:]\s*(\d+)", quantity_keyword="inventory")
    items = extract_inventory(CART_HTML, rules)

    assert items == [InventoryItem("HK Lite", 0), InventoryItem("JP Pro", 12)]


def test_extract_inventory_default_pattern_takes_first_number() -> None:
    html = """
    <div class="card cartitem"><h4>US Basic</h4><p class="card-text">Stock (3)</p></div>
    """
    assert extract_inventory(html, SelectorRules()) == [InventoryItem("US Basic", 3)]


def test_extract_inventory_returns_empty_when_markup_changes() -> None:
    html = "<html><body><div class='login-form'><h4>Sign in</h4></div></body></html>"
    assert extract_inventory(html, SelectorRules()) == []
    assert extract_inventory("", SelectorRules()) == []


def test_custom_selector_triple() -> None:
    html = """
    <ul>
      <li class="product"><span class="title">Box A</span><em class="qty">left: 7</em></li>
      <li class="product"><span class="title">Box B</span><em class="qty">left: 0</em></li>
    </ul>
    """
    rules = SelectorRules(card="li.product", name=".title", quantity=".qty", quantity_pattern=r"left:\s*(\d+)")
    assert extract_inventory(html, rules) == [InventoryItem("Box A", 7), InventoryItem("Box B", 0)]
