import os
from dotenv import load_dotenv

load_dotenv()

# -------- DATABASE --------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./venue_booking.db")

# -------- JWT --------
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))

# -------- KHALTI --------
KHALTI_SECRET_KEY = os.getenv("KHALTI_SECRET_KEY", "")
KHALTI_BASE_URL = os.getenv("KHALTI_BASE_URL", "https://dev.khalti.com/api/v2/")
KHALTI_TIMEOUT = float(os.getenv("KHALTI_TIMEOUT", 10))

# -------- PAYMENT RULES (major currency units) --------
MIN_PAYMENT_AMOUNT = float(os.getenv("MIN_PAYMENT_AMOUNT", 500))
PAYMENT_ROUNDING_TOLERANCE = float(os.getenv("PAYMENT_ROUNDING_TOLERANCE", 1.0))

# -------- MISC --------
REDIS_URL = os.getenv("REDIS_URL")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# -------- MAIL (notifications off without MAIL_USERNAME) --------
MAIL_USERNAME = os.getenv("MAIL_USERNAME")
MAIL_PASSWORD = os.getenv("MAIL_PASSWORD", "")
MAIL_FROM = os.getenv("MAIL_FROM", MAIL_USERNAME)
MAIL_PORT = int(os.getenv("MAIL_PORT", 587))
MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "Venue Booking")
