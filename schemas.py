from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RequestModel(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True,
    )


class OnboardingIn(RequestModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: EmailStr
    phone: Optional[str] = None
    # Admins are provisioned out of band, never self-assigned.
    role: Literal["buyer", "seller"] = "buyer"


class ProductCreate(RequestModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    category: Optional[str] = None
    brand: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    material: Optional[str] = None
    images: List[str] = []


class ProductUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    category: Optional[str] = None
    brand: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    material: Optional[str] = None
    images: Optional[List[str]] = None

    @field_validator("name", "price", "stock")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


class CartAdd(RequestModel):
    product_id: int
    quantity: int = Field(1, ge=1)


class CartItemUpdate(RequestModel):
    item_id: int
    quantity: int = Field(..., ge=1)


class CartItemDelete(RequestModel):
    item_id: int


class OrderCreate(RequestModel):
    pickup_location_id: int


class OrderStatusUpdate(RequestModel):
    status: Literal["pending", "ready_for_pickup", "paid", "cancelled"]


class RatingIn(RequestModel):
    rating: int = Field(..., ge=1, le=5)


class CommentCreate(RequestModel):
    product_id: int
    content: str = Field(..., min_length=1)


class PickupLocationCreate(RequestModel):
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    contact: Optional[str] = None


class UserBrief(CamelModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class UserOut(UserBrief):
    email: Optional[str] = None
    phone: Optional[str] = None
    role: str
    has_completed_onboarding: bool = False


class RoleOut(CamelModel):
    role: str


class ProductBrief(CamelModel):
    id: int
    name: str
    price: float


class ProductOut(ProductBrief):
    description: Optional[str] = None
    stock: int
    category: Optional[str] = None
    brand: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    material: Optional[str] = None
    seller_id: int
    created_at: datetime
    images: List[str] = []

    @field_validator("images", mode="before")
    @classmethod
    def image_urls(cls, v):
        return [getattr(img, "image_url", img) for img in v or []]


class ProductDetail(ProductOut):
    seller: Optional[UserOut] = None


class CartItemOut(CamelModel):
    id: int
    product_id: Optional[int] = None
    quantity: int
    subtotal: float
    product: Optional[ProductOut] = None


class CartOut(CamelModel):
    items: List[CartItemOut] = []
    total: float = 0


class SuccessOut(CamelModel):
    success: bool = True


class MessageOut(CamelModel):
    message: str


class PickupLocationOut(CamelModel):
    id: int
    name: str
    address: str
    city: str
    contact: Optional[str] = None


class OrderItemOut(CamelModel):
    id: int
    product_id: int
    seller_id: int
    quantity: int
    price: float
    subtotal: float
    product: Optional[ProductOut] = None


class OrderOut(CamelModel):
    id: int
    buyer_id: int
    pickup_location_id: int
    total_amount: float
    status: str
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemOut] = []
    pickup_location: Optional[PickupLocationOut] = None
    buyer: Optional[UserOut] = None


class SaleOut(CamelModel):
    id: int
    order_id: int
    order_item_id: int
    buyer_id: int
    seller_id: int
    product_id: int
    quantity: int
    total_price: float
    created_at: datetime
    buyer: Optional[UserBrief] = None
    seller: Optional[UserBrief] = None
    product: Optional[ProductBrief] = None


class RatingOut(CamelModel):
    id: int
    user_id: int
    product_id: int
    rating: int
    number_of_raters: int


class RatingSummary(CamelModel):
    average_rating: float = 0
    total_raters: int = 0
    user_rating: Optional[int] = None


class RatingResult(RatingSummary):
    message: str
    rating: RatingOut


class CommentOut(CamelModel):
    id: int
    product_id: int
    user_id: int
    content: str
    created_at: datetime
    user: Optional[UserBrief] = None
