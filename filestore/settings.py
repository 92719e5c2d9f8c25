from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="FILE_STORAGE_", extra="ignore", frozen=True)

    driver: str = "local"

    local_path: str = "./uploads"
    local_url_prefix: str = "/files"

    s3_bucket_name: str = ""
    s3_region: str = ""
    s3_service_url: str = ""
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_max_attempts: int = 3

    azure_connection_string: str = ""
    azure_container_name: str = "files"

    default_url_expiry: int = 3600  # 1 hour in seconds

    log_level: str = "INFO"
    log_json: bool = False


settings = Settings()
