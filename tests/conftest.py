import itertools
import os

os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import config
import models
import notifications
from database import Base, get_db
from main import app


class RecordingMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, html):
        if self.fail:
            raise RuntimeError("SMTP unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html})


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def client(db, mailer):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[notifications.get_mailer] = lambda: mailer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def token_for(identity_id):
    return jwt.encode({"sub": identity_id}, config.IDENTITY_JWT_SECRET, algorithm=config.IDENTITY_JWT_ALGORITHM)


@pytest.fixture
def auth():
    def _headers(user):
        return {"Authorization": f"Bearer {token_for(user.identity_id)}"}
    return _headers


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(role=models.ROLE_BUYER, email=None, first_name="Test", last_name="User"):
        n = next(counter)
        user = models.User(
            identity_id=f"idp_{role}_{n}",
            first_name=first_name,
            last_name=last_name,
            email=email if email is not None else f"{role}{n}@example.com",
            role=role,
            has_completed_onboarding=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def buyer(make_user):
    return make_user(models.ROLE_BUYER, first_name="Wanjiru", last_name="Kamau")


@pytest.fixture
def seller(make_user):
    return make_user(models.ROLE_SELLER, first_name="Otieno", last_name="Shop")


@pytest.fixture
def admin(make_user):
    return make_user(models.ROLE_ADMIN, first_name="Ada", last_name="Admin")


@pytest.fixture
def make_product(db, seller):
    def _make(name="Linen Shirt", price=1000.0, owner=None, **fields):
        product = models.Product(name=name, price=price, stock=fields.pop("stock", 10), seller_id=(owner or seller).id, **fields)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make


@pytest.fixture
def location(db):
    loc = models.PickupLocation(name="Westlands Hub", address="12 Parklands Rd", city="Nairobi", contact="0700000000")
    db.add(loc)
    db.commit()
    db.refresh(loc)
    return loc


@pytest.fixture
def fill_cart(client, auth):
    def _fill(user, *lines):
        for product, quantity in lines:
            r = client.post("/cart", json={"productId": product.id, "quantity": quantity}, headers=auth(user))
            assert r.status_code == 200, r.text
    return _fill


@pytest.fixture
def bearer():
    def _headers(identity_id):
        return {"Authorization": f"Bearer {token_for(identity_id)}"}
    return _headers
