"""
Order Store — The pipeline's view of the storefront's orders.
Finds orders and updates only their payment fields.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from upi_verify.errors import OrderNotFound
from upi_verify.models.order import Order


class OrderStore:

    @staticmethod
    def find(db: Session, order_id: str) -> Optional[Order]:
        return db.query(Order).filter(Order.id == order_id).first()

    @staticmethod
    def get_for_user(db: Session, order_id: str, user_id: str) -> Order:
        """Order lookup scoped to its owner; other users' orders read as missing."""
        order = db.query(Order).filter(Order.id == order_id, Order.user_id == user_id).first()
        if not order:
            raise OrderNotFound("Order not found")
        return order

    @staticmethod
    def mark_payment_submitted(order: Order, reference: Optional[str], proof_url: Optional[str]) -> None:
        order.payment_status = "PAYMENT_SUBMITTED"
        order.payment_proof = proof_url
        order.payment_submitted_at = datetime.utcnow()
        if reference:
            order.payment_reference = reference

    @staticmethod
    def mark_payment_verified(order: Order, reference: Optional[str]) -> None:
        now = datetime.utcnow()
        order.payment_status = "VERIFIED"
        order.order_status = "CONFIRMED"
        order.payment_verified_at = now
        order.payment_reference = reference

    @staticmethod
    def mark_payment_rejected(order: Order, notes: Optional[str]) -> None:
        order.payment_status = "REJECTED"
        order.admin_notes = notes
