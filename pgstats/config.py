from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PGSTATS_DB__",
        env_file=".env",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 5432
    name: str = "postgres"
    user: str = "postgres"
    password: str = ""
    schema_: str = Field("public", alias="PGSTATS_DB__SCHEMA", validation_alias="PGSTATS_DB__SCHEMA")
    query_timeout_s: int = 30
    pool_min_size: int = 1
    pool_max_size: int = 5

    @property
    def conninfo(self) -> str:
        parts = f"host={self.host} port={self.port} dbname={self.name} user={self.user}"
        if self.password:
            parts += f" password={self.password}"
        return parts


class AnalysisConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PGSTATS_ANALYSIS__",
        env_file=".env",
        extra="ignore",
    )

    default_limit: int = 100  # time series buckets
    default_buckets: int = 10  # histogram bins
    default_sample_size: int = 100  # random sampling rows
    default_sample_percentage: float = 10.0  # TABLESAMPLE percentage
    default_group_limit: int = 20  # groups returned for grouped series/histograms
    small_sample_threshold: int = 30


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    db: DatabaseConfig = DatabaseConfig()  # type: ignore[call-arg]
    analysis: AnalysisConfig = AnalysisConfig()


settings = Settings()
