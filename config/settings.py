"""
Configuration management using Pydantic Settings.
Loads configuration from environment variables with validation.
Command-line flags in exporter.py override these values.
"""
from pathlib import Path
from dotenv import load_dotenv
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional

# Load .env file into os.environ so all nested BaseSettings pick up values
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path)


class CubridSettings(BaseSettings):
    """Monitored CUBRID server and DB-API driver"""
    host: str = Field(default="localhost")
    port: int = Field(default=33000)
    database: str = Field(default="demodb")
    user: str = Field(default="dba")
    password: str = Field(default="")
    driver: str = Field(default="CUBRIDdb")
    dsn: Optional[str] = Field(default=None)

    class Config:
        env_prefix = "CUBRID_"

    def connection_string(self) -> str:
        """CUBRID connection URL; user and password are passed separately."""
        if self.dsn:
            return self.dsn
        return f"CUBRID:{self.host}:{self.port}:{self.database}:::"


class WebSettings(BaseSettings):
    """HTTP listener configuration"""
    listen_address: str = Field(default=":9177")
    telemetry_path: str = Field(default="/metrics")

    class Config:
        env_prefix = "WEB_"


class ScrapeSettings(BaseSettings):
    """Scrape cycle configuration"""
    timeout_offset: float = Field(default=0.25)
    connection_max_lifetime_seconds: float = Field(default=60.0)
    check_server_version: bool = Field(default=False)

    class Config:
        env_prefix = "SCRAPE_"


class LoggingSettings(BaseSettings):
    """Logging configuration"""
    level: str = Field(default="INFO")

    class Config:
        env_prefix = "LOG_"


class Settings(BaseSettings):
    """Main settings aggregating all configuration sections"""
    cubrid: CubridSettings = Field(default_factory=CubridSettings)
    web: WebSettings = Field(default_factory=WebSettings)
    scrape: ScrapeSettings = Field(default_factory=ScrapeSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        extra = "ignore"


# Singleton instance - import this in other modules
try:
    settings = Settings()
except Exception as e:
    # A bad environment value should not make the module unimportable
    print(f"Warning: Could not load settings: {e}")
    settings = None
