from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="MULTI_TENANT_", extra="ignore"
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./multi_tenant.db"

    # Application
    environment: str = "development"
    log_level: str = "info"

    # Tenancy
    tenant_identifier_column: str = "code"
    tenant_not_found_status: int = 404
    tenant_header: str = "X-Tenant"

    @property
    def echo_sql(self) -> bool:
        return self.environment == "development" and self.log_level.lower() == "debug"


settings = Settings()
