"""
Cart item selector - narrows the cart to the items chosen for checkout
"""
import logging
from typing import List, Optional

from models.cart import CartLine

logger = logging.getLogger(__name__)


class CartItemSelector:
    # The persisted selection is injected once at session start

    def __init__(self, selected_item_ids: Optional[List[str]] = None):
        self.selected_item_ids = list(selected_item_ids or [])
        self.used_fallback = False

    def select(self, lines: List[CartLine]) -> List[CartLine]:
        # Stale, missing or empty selection falls back to the whole cart
        wanted = set(self.selected_item_ids)
        chosen = [line for line in lines if line.id in wanted]
        self.used_fallback = not chosen
        if self.used_fallback and wanted:
            logger.info("Item selection matches no cart line, using the whole cart")
        return chosen if chosen else list(lines)

    def selected_ids(self, lines: List[CartLine]) -> List[str]:
        return [line.id for line in self.select(lines)]
