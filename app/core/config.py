from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from typing import List
import os

load_dotenv()

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./property.db")

    # JWT
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_DAYS: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "7"))

    # Phone login (demo code until an SMS provider is wired in)
    OTP_DEMO_CODE: str = os.getenv("OTP_DEMO_CODE", "123456")
    OTP_EXPIRE_MINUTES: int = int(os.getenv("OTP_EXPIRE_MINUTES", "10"))

    # Media
    MEDIA_ROOT: str = os.getenv("MEDIA_ROOT", "media")
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")
    MAX_IMAGE_SIZE_MB: int = int(os.getenv("MAX_IMAGE_SIZE_MB", "10"))
    MAX_IMAGES_PER_PROPERTY: int = int(os.getenv("MAX_IMAGES_PER_PROPERTY", "10"))

    # Payment display details
    UPI_ID: str = os.getenv("UPI_ID", "aashishproperty@paytm")
    BANK_NAME: str = os.getenv("BANK_NAME", "State Bank of India")
    BANK_ACCOUNT_NUMBER: str = os.getenv("BANK_ACCOUNT_NUMBER", "1234567890")
    BANK_IFSC: str = os.getenv("BANK_IFSC", "SBIN0001234")
    BANK_ACCOUNT_HOLDER: str = os.getenv("BANK_ACCOUNT_HOLDER", "Aashish Property Services")

    # App
    APP_NAME: str = os.getenv("APP_NAME", "Property Classifieds API")
    DEBUG: bool = os.getenv("DEBUG", "True") == "True"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    @property
    def origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

settings = Settings()
