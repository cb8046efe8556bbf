from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Name under which every dispatcher registers its main queue context
    main_context_name: str = Field("main", alias="EVENTS_MAIN_CONTEXT")

    # Reusing a key with a different payload type is only warned about
    # unless strict mode is on, in which case subscribe() raises
    strict_key_types: bool = Field(False, alias="EVENTS_STRICT_KEY_TYPES")

    # isinstance() check of each payload against the subscriber's declared type
    check_payload_types: bool = Field(True, alias="EVENTS_CHECK_PAYLOAD_TYPES")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
