from datetime import timedelta
import os
from dotenv import load_dotenv

load_dotenv()
class Config:
    #SQLALCHEMY_DATABASE_URI = "sqlite:///storefront.db"
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///storefront.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.environ.get("SESSION_SECRET", "change-this-session-secret")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY") or os.environ.get("JWT_SECRET")
    JWT_ALGORITHM = "HS256"
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=24)
    PASSWORD_RESET_EXPIRES = timedelta(hours=1)

    SESSION_COOKIE_NAME = "storefront.sid"
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Strict"
    SESSION_COOKIE_SECURE = os.environ.get("FLASK_ENV") == "production"
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)
    MAX_CONTENT_LENGTH = 1024 * 1024

    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
    ALLOWED_ORIGINS = [o for o in (os.environ.get("FRONTEND_URL"), "http://localhost:3000") if o]
    BLOCKED_IPS = [ip.strip() for ip in os.environ.get("BLOCKED_IPS", "").split(",") if ip.strip()]
    CSRF_ENABLED = True
    # legacy clients send the caller's id in a plain header
    TRUST_USER_ID_HEADER = os.environ.get("TRUST_USER_ID_HEADER", "false").lower() == "true"

    RAZORPAY_KEY_ID = os.environ.get("RAZORPAY_KEY_ID")
    RAZORPAY_KEY_SECRET = os.environ.get("RAZORPAY_KEY_SECRET")
    RAZORPAY_BASE_URL = "https://api.razorpay.com/v1"
    RAZORPAY_TIMEOUT = 15
    CURRENCY = "INR"

    TAX_RATE = 0.18
    ITEM_WEIGHT_KG = 0.5

    MAIL_SERVER = 'smtp.gmail.com'
    MAIL_PORT = 587
    MAIL_USE_TLS = True
    MAIL_USERNAME = os.getenv("USERNAME_FOR_EMAIL")
    MAIL_PASSWORD = os.getenv("PASSWORD_FOR_EMAIL")
    MAIL_DEFAULT_SENDER = os.getenv("USERNAME_FOR_EMAIL", "orders@storefront.local")

    # per client IP; blueprints without their own limit share the general one
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_GENERAL = "100 per 15 minutes"
    RATELIMIT_AUTH = "5 per 15 minutes"
    RATELIMIT_CHECKOUT = "20 per 15 minutes"

    SWAGGER = {"title": "Storefront API", "uiversion": 3}


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SECRET_KEY = "test-session-secret"
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-for-hs256"
    RAZORPAY_KEY_ID = "rzp_test_key"
    RAZORPAY_KEY_SECRET = "rzp_test_secret"
    CSRF_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    BCRYPT_LOG_ROUNDS = 4
    BLOCKED_IPS = []
    RATELIMIT_ENABLED = False
