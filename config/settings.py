from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # App
    APP_NAME: str = "Tick Market Simulator"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Market bootstrap
    INITIAL_PRICE: float = 0.02
    INITIAL_INVENTORY: int = 1000
    INITIAL_BALANCE: float = 10.0  # fallback when settlement can't report a balance

    # Pricing
    MIN_PRICE: float = 0.0001
    MAX_PRICE: float = 1.0
    PRICE_SENSITIVITY: float = 0.05  # 5% per unit of net imbalance
    PRICE_NOISE: float = 0.01  # uniform ±1%
    BASELINE_FLOW: float = 3.0  # equilibrium net flow per round

    # Round loop
    TICK_INTERVAL_MS: int = 5000
    MAX_ROUNDS: int = 0  # 0 = unlimited
    HISTORY_LIMIT: int = 100
    RECENT_WINDOW: int = 10
    DEFAULT_SELL_FRACTION: float = 0.08

    # Policy oracle: "rules" (offline) or "llm"
    ORACLE_MODE: str = "rules"
    LLM_API_URL: str = "https://api.anthropic.com/v1/messages"
    LLM_API_KEY: str | None = None
    LLM_MODEL: str = "claude-sonnet-4-20250514"
    LLM_TIMEOUT_S: float = 30.0
    LLM_TEMPERATURE: float = 0.4

    # Settlement: "simulated" (dev mode) or "http"
    SETTLEMENT_MODE: str = "simulated"
    SETTLEMENT_URL: str | None = None
    SETTLEMENT_TIMEOUT_S: float = 10.0
    SETTLEMENT_FAILURE_RATE: float = 0.0


settings = Settings()
