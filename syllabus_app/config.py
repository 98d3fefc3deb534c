from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    app_name: str = 'Course Syllabus'
    app_env: str = 'local'
    app_timezone: str = 'UTC'
    database_url: str = 'sqlite:///./syllabus.db'
    app_base_url: str = 'http://127.0.0.1:8000'
    auth_secret: str = 'change-me'
    session_ttl_hours: int = 12
    file_storage_dir: str = './filedir'
    max_upload_bytes: int = 20 * 1024 * 1024
    draft_ttl_hours: int = 24
    db_slow_query_ms: int = 100
    metrics_slow_ms: int = 200


settings = Settings()
