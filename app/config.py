from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql://postgres:postgres@db:5432/talkpulse"

    # Base URL printed into QR codes; falls back to the request's base URL
    public_site_url: str = ""

    # Object storage (local disk, served by the app under /uploads)
    storage_dir: str = "uploads"
    storage_public_base: str = "/uploads"
    storage_bucket: str = "qr-codes"

    # Webhook relay
    webhook_url: str = "https://n8n.quickly4u.com/webhook/ad2f28be-c5b6-4de8-b8f7-3aee0479c218"
    webhook_timeout: float = 15.0

    # Feedback limits
    comment_max_length: int = 500
    recent_comments_limit: int = 5

    # Code image sizes (pixels)
    qr_display_size: int = 256
    qr_export_size: int = 1024

    # Readiness poll before sharing a stored code image
    readiness_poll_attempts: int = 10
    readiness_poll_interval: float = 0.1  # seconds

    # Auth settings
    session_cookie_name: str = "talkpulse_session"
    session_max_age: int = 86400 * 7  # 7 days
    session_cookie_secure: bool = False  # True in production

    class Config:
        env_file = ".env"


settings = Settings()
