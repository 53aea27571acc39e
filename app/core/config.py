from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field("sqlite+aiosqlite:///./gradebook.db", alias="DATABASE_URL")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Averages are normalised to this scale (e.g. /20)
    grade_scale: int = Field(20, alias="GRADE_SCALE")

    default_page_size: int = Field(50, alias="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(200, alias="MAX_PAGE_SIZE")

    # First default semester spans this many months from the year start
    semester_split_months: int = Field(5, alias="SEMESTER_SPLIT_MONTHS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True


settings = Settings()
