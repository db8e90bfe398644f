from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = "mysql+pymysql://rental:rentalpassword@db:3306/rentalhub?charset=utf8mb4"

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_LOCK_MAX_CONNECTIONS: int = 10

    # Session
    SESSION_TIMEOUT_MINUTES: int = 60

    # VNPay
    VNP_TMNCODE: str = ""
    VNP_HASHSECRET: str = ""
    VNP_URL: str = "https://sandbox.vnpayment.vn/paymentv2/vpcpay.html"
    VNP_RETURNURL: str = "http://localhost:8000/api/subscriptions/payment-callback"
    VNP_VERSION: str = "2.1.0"
    VNP_LOCALE: str = "vn"
    VNP_CURRCODE: str = "VND"
    VNP_EXPIRE_MINUTES: int = 15
    VNP_TIMEZONE: str = "Asia/Ho_Chi_Minh"

    # Billing rules
    RENEWAL_WINDOW_DAYS: int = 30
    LANDLORD_LOCK_TIMEOUT_SECONDS: int = 30
    LANDLORD_LOCK_WAIT_SECONDS: int = 5

    # Resend
    RESEND_API_KEY: str = ""
    RESEND_FROM_EMAIL: str = "noreply@example.com"

    # Site
    CLIENT_URL: str = "http://localhost:3000"
    SITE_NAME: str = "Rental Room"
    ALLOWED_ORIGINS: str = "http://localhost:8000,http://localhost:3000"

    # Scheduler
    SCHEDULER_TIMEZONE: str = "Asia/Ho_Chi_Minh"

    # Environment
    ENV: str = "development"
    DEBUG: bool = True

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
