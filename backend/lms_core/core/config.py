from pydantic_settings import BaseSettings, SettingsConfigDict

MB = 1024 * 1024


class Settings(BaseSettings):
    """Application settings, overridable through environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "lms-core"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Component uploads, one file per component
    VIDEO_MAX_FILE_SIZE: int = 500 * MB
    AUDIO_MAX_FILE_SIZE: int = 100 * MB
    DOCUMENT_MAX_FILE_SIZE: int = 50 * MB
    IMAGE_MAX_FILE_SIZE: int = 10 * MB

    VIDEO_EXTENSIONS: list[str] = ["mp4", "webm", "ogg", "mov", "avi"]
    AUDIO_EXTENSIONS: list[str] = ["mp3", "wav", "ogg", "aac", "m4a"]
    DOCUMENT_EXTENSIONS: list[str] = [
        "pdf",
        "doc",
        "docx",
        "xls",
        "xlsx",
        "ppt",
        "pptx",
        "txt",
        "csv",
    ]
    IMAGE_EXTENSIONS: list[str] = ["jpg", "jpeg", "png", "gif", "webp", "svg"]

    # Activity defaults
    ACTIVITY_ALLOWED_FILE_TYPES: list[str] = ["pdf", "doc", "docx"]
    ACTIVITY_MAX_FILE_SIZE: int = 10 * MB
    ACTIVITY_MAX_FILES: int = 3

    # Quiz defaults
    QUIZ_PASSING_SCORE: int = 70
    QUIZ_ATTEMPTS_ALLOWED: int = 3
    QUIZ_MAX_OPTIONS: int = 6


settings = Settings()  # type: ignore
