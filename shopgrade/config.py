"""Configuration management."""
import os


class Config:
    def __init__(self):
        self.ETSY_API_KEY: str = os.environ.get("ETSY_API_KEY", "")
        self.ETSY_API_BASE: str = os.environ.get("ETSY_API_BASE", "https://openapi.etsy.com/v3")
        self.HTTP_TIMEOUT: float = float(os.environ.get("HTTP_TIMEOUT", "30"))
        self.HTTP_RETRIES: int = int(os.environ.get("HTTP_RETRIES", "3"))
        self.REDIS_URL: str = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
        self.MAX_HISTORY: int = int(os.environ.get("MAX_HISTORY", "50"))
        self.HISTORY_RETENTION_DAYS: int = int(os.environ.get("HISTORY_RETENTION_DAYS", "30"))
        self.PRICE_CACHE_TTL: float = float(os.environ.get("PRICE_CACHE_TTL", "300"))
        self.BOT_TOKEN: str = os.environ.get("BOT_TOKEN", "")
        self.LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    def validate(self):
        if not self.ETSY_API_KEY:
            raise ValueError("ETSY_API_KEY is not set!")

    def validate_bot(self):
        if not self.BOT_TOKEN:
            raise ValueError("BOT_TOKEN is not set!")
        self.validate()


config = Config()
