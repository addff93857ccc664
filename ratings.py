import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import models
from errors import InvalidInput, NotFound

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def rate_product(db: Session, user: models.User, product_id: int, value: int):
    """Store one rating per (user, product); re-rating replaces the value and keeps the count."""
    if not MIN_RATING <= value <= MAX_RATING:
        raise InvalidInput(f"Invalid rating value (must be between {MIN_RATING} and {MAX_RATING})")

    product = db.query(models.Product).filter(models.Product.id == product_id).first()
    if not product:
        raise NotFound("Product not found")

    # A second pass covers a concurrent first rating winning the unique constraint.
    for attempt in range(2):
        rating = db.query(models.Rating).filter(
            models.Rating.user_id == user.id,
            models.Rating.product_id == product_id,
        ).with_for_update().first()

        if rating:
            rating.rating = value
            message = "Rating updated"
        else:
            rating = models.Rating(user_id=user.id, product_id=product_id, rating=value, number_of_raters=1)
            db.add(rating)
            message = "Rating created"

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if attempt:
                raise
            logger.info("Concurrent rating for product %s by user %s, retrying", product_id, user.id)
            continue
        db.refresh(rating)
        return rating, message


def summarize(db: Session, product_id: int, user: Optional[models.User] = None) -> dict:
    total_raters, total_score = db.query(
        func.coalesce(func.sum(models.Rating.number_of_raters), 0),
        func.coalesce(func.sum(models.Rating.rating * models.Rating.number_of_raters), 0),
    ).filter(models.Rating.product_id == product_id).one()

    user_rating = None
    if user is not None:
        own = db.query(models.Rating).filter(
            models.Rating.user_id == user.id,
            models.Rating.product_id == product_id,
        ).first()
        user_rating = own.rating if own else None

    return {
        "average_rating": total_score / total_raters if total_raters else 0,
        "total_raters": int(total_raters),
        "user_rating": user_rating,
    }
