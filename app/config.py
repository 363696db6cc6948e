"""
Configuration Module

Loads and validates environment variables
"""

from functools import lru_cache
from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Application settings"""

    # Supabase
    SUPABASE_URL: str = ''
    SUPABASE_SERVICE_ROLE_KEY: str = ''
    SUPABASE_JWT_SECRET: str = ''

    # OpenAI
    OPENAI_API_KEY: str = ''
    OPENAI_MODEL: str = 'gpt-4o'
    TOPIC_MODEL: str = 'gpt-4o'
    OPENAI_BASE_URL: str = 'https://api.openai.com/v1'

    # Parallel AI (optional web lookup for the research stage)
    PARALLEL_API_KEY: str = ''

    # Research workflow
    RESEARCH_WORKFLOW_URL: str = ''
    RESEARCH_WORKFLOW_TIMEOUT_SECONDS: float = 300.0
    RESEARCH_MAX_CONCURRENCY: int = 1
    RESEARCH_MIN_INTERVAL_SECONDS: float = 1.0
    RESEARCH_RATE_LIMIT: str = '60/hour'
    ANALYZE_RATE_LIMIT: str = '30/hour'

    # Server
    PORT: int = 8080
    NODE_ENV: str = 'development'
    ALLOWED_ORIGINS: str = ''

    # Logging
    LOG_LEVEL: str = 'info'

    class Config:
        env_file = '.env'
        case_sensitive = True
        extra = 'ignore'

    @property
    def is_production(self) -> bool:
        return self.NODE_ENV == 'production'


REQUIRED_VARS = [
    'SUPABASE_URL',
    'SUPABASE_SERVICE_ROLE_KEY',
    'SUPABASE_JWT_SECRET',
    'OPENAI_API_KEY',
]


# Validate required environment variables
def validate_env(current: Settings = None) -> list:
    """
    Validate required environment variables
    Returns:
        Names of the missing variables (empty when configuration is complete)
    """
    current = current or settings
    return [var for var in REQUIRED_VARS if not getattr(current, var, '')]


@lru_cache()
def get_settings() -> Settings:
    """Settings dependency (constructed once per process)"""
    return Settings()


# Create settings instance
settings = get_settings()
