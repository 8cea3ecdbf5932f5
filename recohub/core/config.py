from functools import lru_cache
from typing import Literal, Optional
import os
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from recohub.domain.services.constants import (
    DEFAULT_KNN_NEIGHBORS,
    DEFAULT_MIN_PRODUCTS_FOR_ML,
    STRATEGY_HYBRID,
)

EnvName = Literal["development", "production"]

def _env_file_for(app_env: EnvName) -> str:
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "RecoHub"
    DEBUG: bool = False

    # Mongo (catalog store, read-only from the recommender's side)
    MONGO_URI: Optional[str] = None
    MONGO_DB: str = "catalog"
    MONGO_PRODUCTS_COLLECTION: str = "products"

    # Recommendation
    RECOMMENDATION_FALLBACK_STRATEGY: str = STRATEGY_HYBRID
    RECOMMENDATION_MIN_PRODUCTS_FOR_ML: int = Field(default=DEFAULT_MIN_PRODUCTS_FOR_ML, ge=1)
    RECOMMENDATION_KNN_NEIGHBORS: int = Field(default=DEFAULT_KNN_NEIGHBORS, ge=1)
    RECOMMENDATION_SLOW_MS: float = 200.0              # warn above this end-to-end latency

    # Catalog snapshot loading
    catalog_page_size: int = Field(default=500, ge=1)   # rows per find_all page

    # pydantic-settings config will be set dynamically in the factory below
    model_config = SettingsConfigDict(env_file=None, case_sensitive=True, extra="ignore")

@lru_cache
def get_settings() -> Settings:
    """
    Factory that chooses the right .env file based on APP_ENV.
    Cached so every worker reads the environment once.
    """
    app_env: EnvName = os.getenv("APP_ENV", "development")  # earliest switch
    env_file = _env_file_for(app_env)
    return Settings(
                _env_file=env_file,  # load .env.development or .env.production
                _env_file_encoding="utf-8"
    )
