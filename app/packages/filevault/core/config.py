"""配置模块：加载 .env 文件并缓存基于环境变量的应用设置。

存储后端、配额与下载链接有效期都在部署期决定，进程运行期间不变。
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# app/packages/filevault/core/config.py -> 项目根目录
BASE_DIR = Path(__file__).resolve().parents[4]

# R2 示例配置中的占位值，命中任意一个即视为未配置
R2_PLACEHOLDER_MARKERS = ("your-account-id", "your-r2", "your-bucket")


def _env_files() -> list[Path]:
    """按优先级从低到高返回要加载的 env 文件：``.env`` -> ``.env.<ENVIRONMENT>`` -> ``ENV_FILE``。"""
    files = [BASE_DIR / ".env"]
    environment = os.getenv("ENVIRONMENT")
    if environment:
        files.append(BASE_DIR / (environment if environment.startswith(".env") else f".env.{environment}"))
    override = os.getenv("ENV_FILE")
    if override:
        files.append(BASE_DIR / override)
    return files


def _load_environment() -> None:
    # 已存在的进程环境变量优先于 .env，其余文件按顺序覆盖
    for index, path in enumerate(_env_files()):
        if path.exists():
            load_dotenv(path, override=index > 0, encoding="utf-8")


_load_environment()


class Settings(BaseSettings):
    """应用配置项，每个字段都可以通过同名（alias）环境变量重写。"""

    project_name: str = Field(default="FileVault API", alias="PROJECT_NAME")
    api_v1_str: str = Field(default="/api/v1", alias="API_V1_STR")
    debug: bool = Field(default=False, alias="DEBUG")

    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    database_host: str = Field(default="localhost", alias="DATABASE_HOST")
    database_port: int = Field(default=5432, alias="DATABASE_PORT")
    database_user: str = Field(default="postgres", alias="DATABASE_USER")
    database_password: str = Field(default="postgres", alias="DATABASE_PASSWORD")
    database_name: str = Field(default="filevault", alias="DATABASE_NAME")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    jwt_secret_key: str = Field(default="changeme", alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="log", alias="LOG_DIR")
    log_file_name: str = Field(default="app.log", alias="LOG_FILE_NAME")
    log_json: bool = Field(default=False, alias="LOG_JSON")
    app_port: int = Field(default=8000, alias="APP_PORT")
    timezone: str = Field(default="UTC", alias="TIMEZONE")

    # 存储后端：auto | s3 | local
    storage_backend: str = Field(default="auto", alias="STORAGE_BACKEND")
    r2_endpoint: Optional[str] = Field(default=None, alias="R2_ENDPOINT")
    r2_access_key_id: Optional[str] = Field(default=None, alias="R2_ACCESS_KEY_ID")
    r2_secret_access_key: Optional[str] = Field(default=None, alias="R2_SECRET_ACCESS_KEY")
    r2_bucket_name: Optional[str] = Field(default=None, alias="R2_BUCKET_NAME")
    r2_region: str = Field(default="auto", alias="R2_REGION")
    local_upload_dir: str = Field(default="uploads", alias="LOCAL_UPLOAD_DIR")

    public_base_url: str = Field(default="http://localhost:8000", alias="PUBLIC_BASE_URL")
    frontend_url: str = Field(default="http://localhost:3000", alias="FRONTEND_URL")
    download_url_ttl_seconds: int = Field(default=3600, alias="DOWNLOAD_URL_TTL_SECONDS")

    storage_limit_bytes: int = Field(default=2 * 1024 * 1024 * 1024, alias="STORAGE_LIMIT_BYTES")
    quota_enforced: bool = Field(default=False, alias="QUOTA_ENFORCED")
    max_upload_bytes: int = Field(default=5000 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")
    file_id_max_attempts: int = Field(default=5, alias="FILE_ID_MAX_ATTEMPTS")

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    @property
    def sql_database_url(self) -> str:
        """优先使用 DATABASE_URL，否则根据分项设置拼接 PostgreSQL 连接串。"""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    def _resolve_path(self, raw: str) -> Path:
        path = Path(raw)
        if not path.is_absolute():
            path = BASE_DIR / path
        return path

    @property
    def log_directory(self) -> Path:
        """返回日志目录的绝对路径，支持相对路径配置。"""
        return self._resolve_path(self.log_dir)

    @property
    def log_file_path(self) -> Path:
        """组合日志目录与文件名，得到完整的日志文件路径。"""
        return self.log_directory / self.log_file_name

    @property
    def local_upload_path(self) -> Path:
        """本地存储根目录的绝对路径。"""
        return self._resolve_path(self.local_upload_dir)

    @property
    def timezone_info(self) -> ZoneInfo:
        """返回当前配置对应的时区信息，无法解析时回退到 UTC。"""
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError:
            return ZoneInfo("UTC")

    # -------------------
    # 存储后端判定
    # -------------------
    @property
    def r2_configured(self) -> bool:
        """R2 四项配置齐全且不是示例占位值。"""
        values = (self.r2_endpoint, self.r2_access_key_id, self.r2_secret_access_key, self.r2_bucket_name)
        if not all(values):
            return False
        return not any(marker in value for value in values for marker in R2_PLACEHOLDER_MARKERS)


@lru_cache
def get_settings() -> Settings:
    """返回单例化的配置对象，避免重复解析环境变量造成性能浪费。"""
    return Settings()
