from decimal import Decimal
from typing import Dict, List, MutableMapping

from ..db.session import get_session
from ..models.menu_item import MenuItem
from .logging import log_event
from .totals import CartLineItem, gross_total, to_money


CART_SESSION_KEY = "cart"


class CartService:
    """Per-visitor cart held in a session mapping.

    Lines are keyed by menu item id and carry the name and price captured when
    the item was first added. Prices are stored as strings so the mapping stays
    JSON-serialisable for cookie sessions.
    """

    def __init__(self, store: MutableMapping, session_factory=get_session):
        self._store = store
        self._session_factory = session_factory

    def _lines(self) -> Dict[str, Dict]:
        return dict(self._store.get(CART_SESSION_KEY) or {})

    def _save(self, lines: Dict[str, Dict]) -> None:
        # reassign so cookie-backed sessions notice the change
        self._store[CART_SESSION_KEY] = lines

    def add_item(self, *, item_id: str, quantity: int = 1) -> Dict:
        if not item_id:
            raise ValueError("item_id required")
        qnty = int(quantity or 1)
        if qnty <= 0:
            raise ValueError("quantity must be > 0")
        key = str(item_id)
        lines = self._lines()
        with self._session_factory() as session:
            menu_item = (
                session.query(MenuItem)
                .filter(MenuItem.id == key, MenuItem.is_active.is_(True))
                .first()
            )
            if not menu_item:
                raise ValueError(f"Menu item not found: {key}")
            if key in lines:
                # keep the price captured on first add
                line = dict(lines[key])
                line["quantity"] = int(line["quantity"]) + qnty
            else:
                line = {
                    "id": menu_item.id,
                    "name": menu_item.name,
                    "price": str(to_money(menu_item.price)),
                    "quantity": qnty,
                }
        lines[key] = line
        self._save(lines)
        log_event("info", "cart.item_added", item_id=key, quantity=line["quantity"])
        return self.get_cart()

    def update_item(self, *, item_id: str, quantity: int) -> Dict:
        key = str(item_id)
        lines = self._lines()
        if key not in lines:
            raise ValueError(f"Cart item not found: {key}")
        qnty = int(quantity)
        if qnty <= 0:
            lines.pop(key)
        else:
            line = dict(lines[key])
            line["quantity"] = qnty
            lines[key] = line
        self._save(lines)
        return self.get_cart()

    def remove_item(self, *, item_id: str) -> Dict:
        key = str(item_id)
        lines = self._lines()
        if key not in lines:
            raise ValueError(f"Cart item not found: {key}")
        lines.pop(key)
        self._save(lines)
        return self.get_cart()

    def line_items(self) -> List[CartLineItem]:
        return [
            CartLineItem(
                item_id=line["id"],
                name=line["name"],
                unit_price=Decimal(str(line["price"])),
                quantity=int(line["quantity"]),
            )
            for line in self._lines().values()
        ]

    def get_cart(self) -> Dict:
        items = self.line_items()
        return {
            "items": items,
            "total": gross_total(items),
            "item_count": sum(li.quantity for li in items),
        }

    def clear(self) -> Dict:
        self._store.pop(CART_SESSION_KEY, None)
        log_event("info", "cart.cleared")
        return self.get_cart()
