import os


def get_env(name: str, default: str) -> str:
    return os.getenv(name, default)


DATABASE_PATH = get_env("DATABASE_PATH", "hosteldesk.db")
SESSION_TTL_SECONDS = int(get_env("SESSION_TTL_SECONDS", "600"))
API_BASE_URL = get_env("API_BASE_URL", "http://localhost:1000").rstrip("/")
API_TIMEOUT_SECONDS = int(get_env("API_TIMEOUT_SECONDS", "15"))
FRONTEND_ORIGINS = get_env("FRONTEND_ORIGINS", "http://localhost:3000")
POLICY_PATH = os.getenv("POLICY_PATH")
