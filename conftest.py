import os

# Keep tests off real services
os.environ.setdefault("STORE_BACKEND", "redis")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
