import logging
from datetime import date, datetime, time, timezone
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Query, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session, aliased

import config
import errors
import models
import notifications
import orders
import ratings
import schemas
from auth import (
    check_self,
    get_identity,
    get_optional_user,
    require_admin,
    require_buyer,
    require_seller,
    require_user,
)
from database import engine, get_db
from errors import Forbidden, NotFound

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="ModaHaus API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
errors.install(app)


def get_product_or_404(db: Session, product_id: int) -> models.Product:
    product = db.query(models.Product).filter(models.Product.id == product_id).first()
    if not product:
        raise NotFound("Product not found")
    return product


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/onboarding", response_model=schemas.UserOut)
def onboarding(body: schemas.OnboardingIn, identity: str = Depends(get_identity), db: Session = Depends(get_db)):
    user = db.query(models.User).filter(models.User.identity_id == identity).first()
    if not user:
        user = models.User(identity_id=identity)
        db.add(user)

    user.first_name = body.first_name
    user.last_name = body.last_name
    user.email = body.email
    user.phone = body.phone
    if user.role != models.ROLE_ADMIN:
        user.role = body.role
    user.has_completed_onboarding = True

    db.commit()
    db.refresh(user)
    logger.info("User %s onboarded as %s", user.id, user.role)
    return user


@app.get("/role", response_model=schemas.RoleOut)
def get_role(user: models.User = Depends(require_user)):
    return {"role": user.role}


@app.get("/products", response_model=List[schemas.ProductOut])
def list_products(
    search: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    category: Optional[str] = None,
    brand: Optional[str] = None,
    db: Session = Depends(get_db),
):
    query = db.query(models.Product)
    if search:
        query = query.filter(or_(
            models.Product.name.icontains(search, autoescape=True),
            models.Product.description.icontains(search, autoescape=True),
            models.Product.brand.icontains(search, autoescape=True),
            models.Product.category.icontains(search, autoescape=True),
        ))
    if min_price is not None:
        query = query.filter(models.Product.price >= min_price)
    if max_price is not None:
        query = query.filter(models.Product.price <= max_price)
    if category:
        query = query.filter(models.Product.category == category)
    if brand:
        query = query.filter(models.Product.brand.icontains(brand, autoescape=True))
    return query.order_by(models.Product.created_at.desc(), models.Product.id.desc()).all()


@app.get("/products/{product_id}", response_model=schemas.ProductDetail)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return get_product_or_404(db, product_id)


@app.post("/products", response_model=schemas.ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(body: schemas.ProductCreate, db: Session = Depends(get_db), seller: models.User = Depends(require_seller)):
    product = models.Product(seller_id=seller.id, **body.model_dump(exclude={"images"}))
    product.images = [models.ProductImage(image_url=url, position=i) for i, url in enumerate(body.images)]
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Product %s created by seller %s", product.id, seller.id)
    return product


@app.put("/products/{product_id}", response_model=schemas.ProductOut)
def update_product(product_id: int, body: schemas.ProductUpdate, db: Session = Depends(get_db), seller: models.User = Depends(require_seller)):
    product = get_product_or_404(db, product_id)
    if product.seller_id != seller.id:
        raise Forbidden("You can only edit your own products")

    changes = body.model_dump(exclude_unset=True, exclude={"images"})
    for field, value in changes.items():
        setattr(product, field, value)
    if body.images is not None:
        product.images = [models.ProductImage(image_url=url, position=i) for i, url in enumerate(body.images)]

    db.commit()
    db.refresh(product)
    return product


@app.get("/my-products", response_model=List[schemas.ProductOut])
def my_products(db: Session = Depends(get_db), seller: models.User = Depends(require_seller)):
    return (
        db.query(models.Product)
        .filter(models.Product.seller_id == seller.id)
        .order_by(models.Product.created_at.desc(), models.Product.id.desc())
        .all()
    )


@app.get("/cart", response_model=schemas.CartOut)
def get_cart(user_id: Optional[int] = Query(None, alias="userId"), db: Session = Depends(get_db), buyer: models.User = Depends(require_buyer)):
    check_self(buyer, user_id)
    cart = db.query(models.Cart).filter(models.Cart.user_id == buyer.id).first()
    if not cart:
        return {"items": [], "total": 0}
    return {"items": cart.items, "total": sum(item.subtotal for item in cart.items)}


@app.post("/cart", response_model=schemas.SuccessOut)
def add_to_cart(body: schemas.CartAdd, db: Session = Depends(get_db), buyer: models.User = Depends(require_buyer)):
    get_product_or_404(db, body.product_id)

    cart = db.query(models.Cart).filter(models.Cart.user_id == buyer.id).first()
    if not cart:
        cart = models.Cart(user_id=buyer.id)
        db.add(cart)
        db.flush()

    item = db.query(models.CartItem).filter(
        models.CartItem.cart_id == cart.id,
        models.CartItem.product_id == body.product_id,
    ).first()
    if item:
        item.quantity += body.quantity
    else:
        db.add(models.CartItem(cart_id=cart.id, product_id=body.product_id, quantity=body.quantity))

    db.commit()
    return {"success": True}


def get_own_cart_item(db: Session, buyer: models.User, item_id: int) -> models.CartItem:
    item = (
        db.query(models.CartItem)
        .join(models.Cart)
        .filter(models.CartItem.id == item_id, models.Cart.user_id == buyer.id)
        .first()
    )
    if not item:
        raise NotFound("Cart item not found")
    return item


@app.patch("/cart/item", response_model=schemas.CartItemOut)
def update_cart_item(body: schemas.CartItemUpdate, db: Session = Depends(get_db), buyer: models.User = Depends(require_buyer)):
    item = get_own_cart_item(db, buyer, body.item_id)
    item.quantity = body.quantity
    db.commit()
    db.refresh(item)
    return item


@app.delete("/cart/item", response_model=schemas.MessageOut)
def remove_cart_item(body: schemas.CartItemDelete, db: Session = Depends(get_db), buyer: models.User = Depends(require_buyer)):
    item = get_own_cart_item(db, buyer, body.item_id)
    db.delete(item)
    db.commit()
    return {"message": "Item removed"}


@app.post("/order", response_model=schemas.OrderOut, status_code=status.HTTP_201_CREATED)
def place_order(
    body: schemas.OrderCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    buyer: models.User = Depends(require_buyer),
    mailer: notifications.Mailer = Depends(notifications.get_mailer),
):
    order = orders.place_order(db, buyer, body.pickup_location_id)
    if buyer.email:
        subject, html = notifications.order_confirmation(order)
        background_tasks.add_task(notifications.deliver, mailer, buyer.email, subject, html)
    return order


@app.get("/order", response_model=List[schemas.OrderOut])
def my_orders(user_id: Optional[int] = Query(None, alias="userId"), db: Session = Depends(get_db), buyer: models.User = Depends(require_buyer)):
    check_self(buyer, user_id)
    return (
        db.query(models.Order)
        .filter(models.Order.buyer_id == buyer.id)
        .order_by(models.Order.created_at.desc(), models.Order.id.desc())
        .all()
    )


@app.get("/admin/orders", response_model=List[schemas.OrderOut])
def admin_list_orders(
    pickup_location_id: Optional[int] = Query(None, alias="pickupLocationId"),
    order_id: Optional[str] = Query(None, alias="orderId"),
    email: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    query = db.query(models.Order)
    if pickup_location_id is not None:
        query = query.filter(models.Order.pickup_location_id == pickup_location_id)
    if order_id:
        query = query.filter(cast(models.Order.id, String).contains(order_id, autoescape=True))
    if email:
        query = query.join(models.Order.buyer).filter(models.User.email.icontains(email, autoescape=True))
    return query.order_by(models.Order.created_at.desc(), models.Order.id.desc()).all()


@app.patch("/admin/orders/{order_id}", response_model=schemas.OrderOut)
def admin_update_order(
    order_id: int,
    body: schemas.OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
    mailer: notifications.Mailer = Depends(notifications.get_mailer),
):
    order, changed = orders.update_status(db, order_id, body.status)
    if changed and order.status == models.STATUS_READY_FOR_PICKUP and order.buyer and order.buyer.email:
        subject, html = notifications.pickup_ready(order)
        background_tasks.add_task(notifications.deliver, mailer, order.buyer.email, subject, html)
    return order


@app.post("/rating/{product_id}", response_model=schemas.RatingResult)
def rate_product(product_id: int, body: schemas.RatingIn, db: Session = Depends(get_db), user: models.User = Depends(require_user)):
    rating, message = ratings.rate_product(db, user, product_id, body.rating)
    return {"message": message, "rating": rating, **ratings.summarize(db, product_id, user)}


@app.get("/rating", response_model=schemas.RatingSummary)
def get_rating(product_id: int = Query(..., alias="productId"), db: Session = Depends(get_db), user: Optional[models.User] = Depends(get_optional_user)):
    return ratings.summarize(db, product_id, user)


@app.post("/comments", response_model=schemas.CommentOut, status_code=status.HTTP_201_CREATED)
def create_comment(body: schemas.CommentCreate, db: Session = Depends(get_db), user: models.User = Depends(require_user)):
    get_product_or_404(db, body.product_id)
    comment = models.Comment(product_id=body.product_id, user_id=user.id, content=body.content)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment


@app.get("/comments/{product_id}", response_model=List[schemas.CommentOut])
def list_comments(product_id: int, db: Session = Depends(get_db)):
    return (
        db.query(models.Comment)
        .filter(models.Comment.product_id == product_id)
        .order_by(models.Comment.created_at.desc(), models.Comment.id.desc())
        .all()
    )


@app.get("/pickup-locations", response_model=List[schemas.PickupLocationOut])
def list_pickup_locations(db: Session = Depends(get_db)):
    return db.query(models.PickupLocation).order_by(models.PickupLocation.name, models.PickupLocation.id).all()


@app.post("/pickup-locations", response_model=schemas.PickupLocationOut, status_code=status.HTTP_201_CREATED)
def create_pickup_location(body: schemas.PickupLocationCreate, db: Session = Depends(get_db), admin: models.User = Depends(require_admin)):
    location = models.PickupLocation(**body.model_dump())
    db.add(location)
    db.commit()
    db.refresh(location)
    return location


@app.get("/sales", response_model=List[schemas.SaleOut])
def list_sales(
    search: Optional[str] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    query = db.query(models.Sale)
    if start_date:
        query = query.filter(models.Sale.created_at >= datetime.combine(start_date, time.min, tzinfo=timezone.utc))
    if end_date:
        query = query.filter(models.Sale.created_at <= datetime.combine(end_date, time.max, tzinfo=timezone.utc))
    if search:
        buyer = aliased(models.User)
        query = (
            query.join(models.Sale.product)
            .join(buyer, models.Sale.buyer_id == buyer.id)
            .filter(or_(
                models.Product.name.icontains(search, autoescape=True),
                buyer.first_name.icontains(search, autoescape=True),
                buyer.last_name.icontains(search, autoescape=True),
            ))
        )
    return query.order_by(models.Sale.created_at.desc(), models.Sale.id.desc()).all()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
