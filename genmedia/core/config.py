from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Provider credentials (a provider without a key is simply not registered)
    fal_api_key: str = ""
    openrouter_api_key: str = ""
    modelslab_api_key: str = ""

    # Per-provider overrides; None keeps the adapter's built-in default
    fal_timeout_seconds: float | None = None
    fal_max_retries: int | None = None
    fal_rpm_limit: int | None = None

    openrouter_timeout_seconds: float | None = None
    openrouter_max_retries: int | None = None
    openrouter_rpm_limit: int | None = None

    modelslab_timeout_seconds: float | None = None
    modelslab_max_retries: int | None = None
    modelslab_rpm_limit: int | None = None

    # OpenRouter attribution headers
    openrouter_referer: str = "http://localhost:3000"
    openrouter_app_title: str = "Generative Media Gateway"

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # CORS
    allowed_origins: str = "*"  # comma-separated, e.g. "https://app.example.com,https://admin.example.com"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    errors: list[str] = []

    if not (settings.fal_api_key or settings.openrouter_api_key or settings.modelslab_api_key):
        errors.append("At least one of FAL_API_KEY, OPENROUTER_API_KEY, MODELSLAB_API_KEY must be set")

    for name in ("fal", "openrouter", "modelslab"):
        rpm = getattr(settings, f"{name}_rpm_limit")
        if rpm is not None and rpm <= 0:
            errors.append(f"{name.upper()}_RPM_LIMIT must be positive")

    if settings.app_env == "production":
        if settings.allowed_origins == "*":
            errors.append("ALLOWED_ORIGINS must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
