import logging

from sqlalchemy.orm import Session

import models
from errors import InvalidInput, NotFound

logger = logging.getLogger(__name__)

TRANSITIONS = {
    models.STATUS_PENDING: {models.STATUS_READY_FOR_PICKUP, models.STATUS_PAID, models.STATUS_CANCELLED},
    models.STATUS_READY_FOR_PICKUP: {models.STATUS_PAID, models.STATUS_CANCELLED},
    models.STATUS_PAID: set(),
    models.STATUS_CANCELLED: set(),
}


def place_order(db: Session, buyer: models.User, pickup_location_id: int) -> models.Order:
    """Convert the buyer's cart into an order priced at current product prices, then empty the cart."""
    location = db.query(models.PickupLocation).filter(models.PickupLocation.id == pickup_location_id).first()
    if not location:
        raise NotFound("Pickup location not found")

    cart = db.query(models.Cart).filter(models.Cart.user_id == buyer.id).with_for_update().first()
    if not cart:
        raise InvalidInput("Cart is empty")

    lines = [item for item in cart.items if item.product is not None]
    if not lines:
        raise InvalidInput("No valid items in cart")

    order = models.Order(
        buyer_id=buyer.id,
        pickup_location_id=location.id,
        total_amount=sum(item.product.price * item.quantity for item in lines),
        status=models.STATUS_PENDING,
    )
    order.items = [
        models.OrderItem(
            product_id=item.product_id,
            seller_id=item.product.seller_id,
            quantity=item.quantity,
            price=item.product.price,
        )
        for item in lines
    ]
    db.add(order)
    db.query(models.CartItem).filter(models.CartItem.cart_id == cart.id).delete(synchronize_session=False)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(order)

    logger.info("Order %s placed by user %s: %d items, total %.2f", order.id, buyer.id, len(order.items), order.total_amount)
    return order


def record_sales(db: Session, order: models.Order):
    """One sale per order item; the order item id is the idempotency key."""
    recorded = {
        row.order_item_id
        for row in db.query(models.Sale.order_item_id).filter(models.Sale.order_id == order.id)
    }
    created = 0
    for item in order.items:
        if item.id in recorded:
            continue
        db.add(models.Sale(
            order_id=order.id,
            order_item_id=item.id,
            buyer_id=order.buyer_id,
            seller_id=item.seller_id,
            product_id=item.product_id,
            quantity=item.quantity,
            total_price=item.price * item.quantity,
        ))
        created += 1
    return created


def update_status(db: Session, order_id: int, status: str):
    """Move an order to ``status``. Returns ``(order, changed)``.

    Setting the status an order already has is a no-op, so a retried request
    never repeats side effects.
    """
    order = db.query(models.Order).filter(models.Order.id == order_id).with_for_update().first()
    if not order:
        raise NotFound("Order not found")

    if order.status == status:
        return order, False
    if status not in TRANSITIONS[order.status]:
        raise InvalidInput(f"Cannot change order status from {order.status} to {status}")

    previous = order.status
    order.status = status
    created = record_sales(db, order) if status == models.STATUS_PAID else 0
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(order)

    logger.info("Order %s: %s -> %s (%d sales recorded)", order.id, previous, status, created)
    return order, True
