import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

import config
import models
from database import get_db
from errors import Forbidden, NotFound, Unauthorized

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def decode_identity_token(token: str) -> str:
    try:
        claims = jwt.decode(
            token,
            config.IDENTITY_JWT_SECRET,
            algorithms=[config.IDENTITY_JWT_ALGORITHM],
            audience=config.IDENTITY_JWT_AUDIENCE,
            options={"verify_aud": config.IDENTITY_JWT_AUDIENCE is not None},
        )
    except JWTError as e:
        logger.info("Rejected identity token: %s", e)
        raise Unauthorized("Invalid token")
    subject = claims.get("sub")
    if not subject:
        raise Unauthorized("Invalid token")
    return str(subject)


def get_identity(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> str:
    if not creds:
        raise Unauthorized()
    return decode_identity_token(creds.credentials)


def get_current_user(identity: str = Depends(get_identity), db: Session = Depends(get_db)) -> models.User:
    user = db.query(models.User).filter(models.User.identity_id == identity).first()
    if not user:
        raise NotFound("User not found")
    return user


def get_optional_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Optional[models.User]:
    if not creds:
        return None
    try:
        identity = decode_identity_token(creds.credentials)
    except Unauthorized:
        # A stale token still gets the anonymous view.
        return None
    return db.query(models.User).filter(models.User.identity_id == identity).first()


class Capability:
    """A role gate usable directly as a FastAPI dependency."""

    roles = ()
    denied = "Forbidden"

    def allows(self, user: models.User) -> bool:
        return not self.roles or user.role in self.roles

    def __call__(self, user: models.User = Depends(get_current_user)) -> models.User:
        if not self.allows(user):
            raise Forbidden(self.denied)
        return user


class Authenticated(Capability):
    pass


class Buyer(Capability):
    roles = (models.ROLE_BUYER,)
    denied = "Buyer access only"


class Seller(Capability):
    roles = (models.ROLE_SELLER,)
    denied = "Seller access only"


class Admin(Capability):
    roles = (models.ROLE_ADMIN,)
    denied = "Admin access only"


require_user = Authenticated()
require_buyer = Buyer()
require_seller = Seller()
require_admin = Admin()


def check_self(user: models.User, user_id: Optional[int]):
    """Reject a ``userId`` parameter that names someone other than the caller."""
    if user_id is not None and user_id != user.id:
        raise Forbidden()
