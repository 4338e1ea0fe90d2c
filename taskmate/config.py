from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://taskmate:taskmate@db:5432/taskmate"
  app_secret: str = "dev-secret-change-me"
  app_version: str = "v2026-10-19"
  build_sha: str = "dev"
  api_docs_enabled: bool = True
  log_level: str = "INFO"
  create_schema_on_start: bool = False

  jwt_algorithm: str = "HS256"
  token_ttl_days: int = 7
  bcrypt_rounds: int = 12

  google_client_id: str | None = None
  # Attach a Google identity to an existing local account with the same email.
  google_account_linking: bool = True

  completion_email_enabled: bool = False
  smtp_host: str | None = None
  smtp_port: int = 587
  smtp_username: str | None = None
  smtp_password: str | None = None
  smtp_from: str | None = None
  smtp_starttls: bool = True

  rate_limit_auth_ip_per_minute: int = 60
  rate_limit_auth_email_per_minute: int = 20

  cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8080"
  cors_origin_regex: str = r"^http://(localhost|127\.0\.0\.1):\d+$"
  trusted_hosts: str = "localhost,127.0.0.1,0.0.0.0,api,test"

  upload_dir: str = "data/uploads"
  max_attachment_bytes: int = 10 * 1024 * 1024

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def trusted_host_list(self) -> list[str]:
    return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]

  def is_test_db(self) -> bool:
    db_name = self.database_url.rsplit("/", 1)[-1]
    return "test" in db_name


settings = Settings()
