from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    seed_phrase: str | None = None
    cipher_text: str | None = None
    password: str | None = None

    # Single lite server; falls back to the public mainnet config when host is unset
    liteserver_host: str | None = None
    liteserver_port: int = 13206
    liteserver_pub_key: str | None = None
    trust_level: int = 2

    # highload_v2 | highload_v3 | v4r2
    wallet_version: str = "highload_v2"

    explorer_tx_url: str = "https://tonscan.org/tx/"
    confirmation_timeout: float = 60.0
    confirmation_poll_interval: float = 2.0
    max_messages: int = 254
    atomic_balance_check: bool = False

    rate_limit: str = "60/minute"
    port: int = 8888


setting = Settings()
