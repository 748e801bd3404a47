import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    CHECKUP_CONFIG: str = os.getenv("CHECKUP_CONFIG", "checkup.json")
    CHECKUP_DB_PATH: str = os.getenv("CHECKUP_DB_PATH", "checkup.sqlite3")
    CHECKUP_LOG_LEVEL: str = os.getenv("CHECKUP_LOG_LEVEL", "INFO").upper()
    CHECKUP_MAX_WORKERS: int = int(os.getenv("CHECKUP_MAX_WORKERS", 16))
    CHECKUP_HTTP_TIMEOUT_SECONDS: float = float(
        os.getenv("CHECKUP_HTTP_TIMEOUT_SECONDS", "5")
    )


settings = Settings()
