# spiral_app/config/settings.py

import os

class Settings:
    # Database URL used by SQLAlchemy
    db_connection_string: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./spiral.db"
    )

    log_level: str    = os.getenv("SPIRAL_LOG_LEVEL", "INFO")
    default_tier: str = os.getenv("SPIRAL_DEFAULT_TIER", "free")

    # Where the Streamlit companion finds the API
    api_base_url: str = os.getenv("SPIRAL_API_URL", "http://localhost:8000")

settings = Settings()
