import os
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent.parent  # go up to project root
env_path = BASE_DIR / ".env.development"

REQUIRED_VARS = ["JWT_SECRET", "AWS_S3_BUCKET", "AWS_REGION"]


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


class Settings:
    """
    Process-wide configuration, built once at startup and passed down
    explicitly. Keyword overrides win over the environment.
    """

    def __init__(self, **overrides):
        self.MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
        self.MONGO_DB: str = os.getenv("MONGO_DB", "tubely")

        self.JWT_SECRET: str = os.getenv("JWT_SECRET")

        self.AWS_S3_BUCKET: str = os.getenv("AWS_S3_BUCKET")
        self.AWS_REGION: str = os.getenv("AWS_REGION")
        self.AWS_ACCESS_KEY_ID: str = os.getenv("AWS_ACCESS_KEY_ID")
        self.AWS_SECRET_ACCESS_KEY: str = os.getenv("AWS_SECRET_ACCESS_KEY")
        # e.g. https://d111111abcdef8.cloudfront.net
        self.S3_CF_DISTRIBUTION: str = os.getenv("S3_CF_DISTRIBUTION")
        self.S3_MAX_ATTEMPTS: int = _int_env("S3_MAX_ATTEMPTS", 3)
        self.S3_CONNECT_TIMEOUT: float = _float_env("S3_CONNECT_TIMEOUT", 10.0)
        self.S3_READ_TIMEOUT: float = _float_env("S3_READ_TIMEOUT", 120.0)

        self.MAX_UPLOAD_BYTES: int = _int_env("MAX_UPLOAD_BYTES", 1 << 30)  # 1 GB
        self.UPLOAD_TMP_DIR: str = os.getenv("UPLOAD_TMP_DIR")

        self.FFPROBE_PATH: str = os.getenv("FFPROBE_PATH", "ffprobe")
        self.FFMPEG_PATH: str = os.getenv("FFMPEG_PATH", "ffmpeg")
        self.MEDIA_TIMEOUT_SECONDS: float = _float_env("MEDIA_TIMEOUT_SECONDS", 300.0)

        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

        for name, value in overrides.items():
            if not hasattr(self, name):
                raise AttributeError(f"Unknown setting: {name}")
            setattr(self, name, value)

    def validate(self) -> None:
        missing = [name for name in REQUIRED_VARS if not getattr(self, name)]
        if missing:
            raise RuntimeError(f"Missing env vars: {missing}")


def load_settings() -> Settings:
    # Load .env only if it exists
    if env_path.exists():
        load_dotenv(env_path)
    return Settings()
