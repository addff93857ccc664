import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./modahaus.db")

# Tokens are minted by the identity provider; we only verify them.
IDENTITY_JWT_SECRET = os.getenv("IDENTITY_JWT_SECRET", "dev_secret_change_me")
IDENTITY_JWT_ALGORITHM = os.getenv("IDENTITY_JWT_ALGORITHM", "HS256")
IDENTITY_JWT_AUDIENCE = os.getenv("IDENTITY_JWT_AUDIENCE") or None

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_TIMEOUT = float(os.getenv("SMTP_TIMEOUT", 10))
MAIL_FROM = os.getenv("MAIL_FROM", "orders@modahaus.local")

CURRENCY = os.getenv("CURRENCY", "Ksh")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
