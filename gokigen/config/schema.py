"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StorageConfig(Base):
    """Local persistence configuration."""

    data_dir: str = "~/.gokigen"
    state_file: str = "state.json"  # Key-value store file inside data_dir


class SyncConfig(Base):
    """Remote sync configuration."""

    page_size: int = Field(default=30, ge=1)
    load_more_debounce_s: float = Field(default=0.7, ge=0)


class QuotaConfig(Base):
    """Rewrite allowance configuration."""

    free_daily_limit: int = Field(default=10, ge=0)
    lifetime_monthly_limit: int = Field(default=200, ge=0)
    timezone: str = "UTC"  # Reference zone for day/month keys; keep fixed once users exist


class AIConfig(Base):
    """Text-generation configuration."""

    model: str = "gemini/gemini-1.5-flash"
    api_key: str = ""
    api_base: str | None = None
    extra_headers: dict[str, str] | None = None
    max_tokens: int = 1024
    temperature: float = 0.7
    daily_network_limit: int = Field(default=20, ge=0)  # Local cap on remote calls per day, all plans
    cache_capacity: int = Field(default=50, ge=1)
    request_timeout_s: float = 30.0  # 0 disables the deadline


class ProductsConfig(Base):
    """Store product identifiers per plan."""

    subscription_ids: list[str] = Field(default_factory=lambda: ["gokigen.premium.monthly"])
    lifetime_ids: list[str] = Field(default_factory=lambda: ["gokigen.lifetime"])


class TrendsConfig(Base):
    """Trend summary configuration."""

    window: int = Field(default=14, ge=1)
    recent_count: int = Field(default=7, ge=1)


class NoticesConfig(Base):
    """User-facing notice timing."""

    success_display_s: float = 2.5
    error_display_s: float = 3.5
    paywall_throttle_s: float = 0.8


class Config(BaseSettings):
    """Root configuration for gokigen."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    quota: QuotaConfig = Field(default_factory=QuotaConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    products: ProductsConfig = Field(default_factory=ProductsConfig)
    trends: TrendsConfig = Field(default_factory=TrendsConfig)
    notices: NoticesConfig = Field(default_factory=NoticesConfig)

    @property
    def data_path(self) -> Path:
        """Get expanded data directory path."""
        return Path(self.storage.data_dir).expanduser()

    @property
    def state_path(self) -> Path:
        """Get the key-value state file path."""
        return self.data_path / self.storage.state_file

    model_config = SettingsConfigDict(env_prefix="GOKIGEN_", env_nested_delimiter="__")
