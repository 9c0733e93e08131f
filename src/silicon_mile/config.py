"""Configuration loader for Silicon Mile registration with environment-specific support"""

import os
from pathlib import Path

from dotenv import load_dotenv

project_dir = Path(__file__).parent.parent.parent
env_path = project_dir / ".env"

# Load .env file if it exists. For local development only.
if env_path.exists():
    load_dotenv(env_path)

# Configuration dictionary - set once at initialization
config = {
    "database_url": os.getenv("DATABASE_URL"),
    "redis_url": os.getenv("REDIS_URL", "redis://localhost:6379/0"),
    "port": int(os.getenv("PORT", "8000")),
    "log_level": os.getenv("LOG_LEVEL", "INFO"),
    "session_secret_key": os.getenv("SESSION_SECRET_KEY"),
    # Cookies are HTTPS-only unless explicitly disabled (plain-HTTP local runs)
    "session_https_only": os.getenv("SESSION_HTTPS_ONLY", "true").lower() != "false",
    "auth0_domain": os.getenv("AUTH0_DOMAIN"),
    "auth0_client_id": os.getenv("AUTH0_CLIENT_ID"),
    "auth0_client_secret": os.getenv("AUTH0_CLIENT_SECRET"),
    "auth0_connection": os.getenv(
        "AUTH0_CONNECTION", "Username-Password-Authentication"
    ),
    "auth0_management_client_id": os.getenv("AUTH0_MANAGEMENT_CLIENT_ID"),
    "auth0_management_client_secret": os.getenv("AUTH0_MANAGEMENT_CLIENT_SECRET"),
    "environment": os.getenv("ENVIRONMENT"),
}
