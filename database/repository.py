"""
Database repository classes
"""
import json
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from models.cart import CartLine
from models.checkout import CheckoutDraft
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParkedCheckout:
    """A draft parked while its order waits on an external payment"""
    draft: CheckoutDraft
    selected_item_ids: List[str]
    cart_lines: List[CartLine]


class SelectionRepository:
    # Persisted set of cart item ids selected for checkout

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection

    def save(self, session_id: str, item_ids: List[str]) -> None:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            INSERT OR REPLACE INTO Checkout_Selections (session_id, item_ids, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            """, (session_id, json.dumps(list(item_ids))))
            conn.commit()

    def load(self, session_id: str) -> Optional[List[str]]:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT item_ids FROM Checkout_Selections WHERE session_id = ?",
                           (session_id,))
            row = cursor.fetchone()

        if not row:
            return None
        try:
            item_ids = json.loads(row[0])
        except ValueError:
            # A corrupted row behaves like a missing selection
            logger.warning("Unreadable item selection for session %s", session_id)
            return None
        return [str(item_id) for item_id in item_ids] if isinstance(item_ids, list) else None

    def clear(self, session_id: str) -> None:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM Checkout_Selections WHERE session_id = ?", (session_id,))
            conn.commit()


class DraftRepository:
    # Checkout draft snapshots, one per key

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection

    @staticmethod
    def parked_key(order_id: str) -> str:
        return f"order:{order_id}"

    def save(self, draft_key: str, draft: CheckoutDraft) -> None:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            INSERT OR REPLACE INTO Checkout_Drafts (draft_key, payload, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            """, (draft_key, json.dumps(draft.to_dict())))
            conn.commit()

    def load(self, draft_key: str) -> Optional[CheckoutDraft]:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT payload FROM Checkout_Drafts WHERE draft_key = ?", (draft_key,))
            row = cursor.fetchone()

        if not row:
            return None
        return CheckoutDraft.from_dict(json.loads(row[0]))

    def delete(self, draft_key: str) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM Checkout_Drafts WHERE draft_key = ?", (draft_key,))
            conn.commit()
            return cursor.rowcount > 0

    def park(self, order_id: str, session_id: str, draft: CheckoutDraft,
             cart_lines: Sequence[CartLine], selected_item_ids: Sequence[str]) -> None:
        """Keep the draft of a payment-redirect order, owned by the session that placed it"""
        context = {
            'selectedItemIds': list(selected_item_ids),
            'cart': [line.to_dict() for line in cart_lines]
        }
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            INSERT OR REPLACE INTO Checkout_Drafts (draft_key, payload, owner_session, context, updated_at)
            VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP)
            """, (self.parked_key(order_id), json.dumps(draft.to_dict()), session_id, json.dumps(context)))
            conn.commit()

    def load_parked(self, order_id: str, session_id: str) -> Optional[ParkedCheckout]:
        # Other sessions see nothing, the same as an unknown order
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT payload, context FROM Checkout_Drafts WHERE draft_key = ? AND owner_session = ?",
                (self.parked_key(order_id), session_id)
            )
            row = cursor.fetchone()

        if not row:
            return None
        context = json.loads(row[1]) if row[1] else {}
        return ParkedCheckout(
            draft=CheckoutDraft.from_dict(json.loads(row[0])),
            selected_item_ids=[str(item_id) for item_id in context.get('selectedItemIds', [])],
            cart_lines=[CartLine.from_dict(item) for item in context.get('cart', [])]
        )
