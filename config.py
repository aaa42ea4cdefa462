from dotenv import load_dotenv
import os

load_dotenv()  # Load variables from .env file

# JWT configuration
SECRET_KEY = os.getenv("SECRET_KEY", "default-secret")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

# Storage
DATABASE_PATH = os.getenv("DATABASE_PATH", "events.db")

# HTTP
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# External QR code renderer, consumed by URL only
QR_CODE_ENDPOINT = os.getenv("QR_CODE_ENDPOINT", "https://api.qrserver.com/v1/create-qr-code/")
QR_CODE_SIZE = os.getenv("QR_CODE_SIZE", "200x200")
