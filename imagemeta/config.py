"""Configuration management for imagemeta."""

import os

from dotenv import load_dotenv

from imagemeta import __version__

# Load environment variables from .env file
load_dotenv()


class Config:
    """Library configuration."""

    # HTTP
    HTTP_TIMEOUT: float = float(os.getenv("IMAGEMETA_HTTP_TIMEOUT", "10"))
    USER_AGENT: str = os.getenv("IMAGEMETA_USER_AGENT", f"imagemeta/{__version__}")

    # Limits
    MAX_DELEGATE_BYTES: int = int(
        os.getenv("IMAGEMETA_MAX_DELEGATE_BYTES", str(64 * 1024 * 1024))
    )
    HEADER_SCAN_LIMIT: int = int(
        os.getenv("IMAGEMETA_HEADER_SCAN_LIMIT", str(1024 * 1024))
    )

    # Diagnostics
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"


config = Config()
