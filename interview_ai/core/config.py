from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # OpenAI credentials: several keys spread load across provider quotas
    openai_api_key: str = ""
    openai_api_key_2: str = ""
    openai_api_key_3: str = ""
    openai_api_keys: str = ""  # comma-separated, appended after the numbered keys

    @property
    def api_key_pool(self) -> list[str]:
        """Configured keys in declaration order, blanks and duplicates dropped."""
        candidates = [self.openai_api_key, self.openai_api_key_2, self.openai_api_key_3]
        candidates.extend(self.openai_api_keys.split(","))

        pool: list[str] = []
        for key in candidates:
            key = key.strip()
            if key and key not in pool:
                pool.append(key)
        return pool

    # OpenAI endpoints & models
    openai_base_url: str = "https://api.openai.com/v1"
    evaluation_model: str = "gpt-4o"
    transcription_model: str = "whisper-1"
    speech_model: str = "tts-1"
    speech_voice: str = "alloy"

    # Admission control
    max_concurrent_requests: int = 300

    # Retry policy
    request_timeout_seconds: float = 30.0
    retry_attempts: int = 3
    retry_base_delay_ms: int = 1000
    retry_max_delay_ms: int = 5000

    # Cache TTLs (seconds)
    cache_ttl_questions: int = 3600
    cache_ttl_evaluations: int = 1800
    cache_cleanup_threshold: int = 1000  # sweep expired entries above this size

    # Performance tracking
    slow_request_threshold_ms: int = 5000
    metrics_window_size: int = 100
    metrics_reset_interval_seconds: int = 300
    maintenance_interval_seconds: int = 60

    # Throttle thresholds
    throttle_queue_length: int = 50
    throttle_error_rate: float = 0.1
    throttle_response_time_ms: int = 10000

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # CORS
    allowed_origins: str = "*"  # comma-separated, e.g. "https://app.example.com,https://admin.example.com"

    # Rate limit applied per client IP on the interview endpoints
    rate_limit_enabled: bool = True
    interview_rate_limit: str = "120/minute"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    errors: list[str] = []

    if not settings.api_key_pool:
        errors.append("At least one of OPENAI_API_KEY, OPENAI_API_KEY_2, OPENAI_API_KEY_3, OPENAI_API_KEYS must be set")

    if settings.max_concurrent_requests < 1:
        errors.append("MAX_CONCURRENT_REQUESTS must be at least 1")

    if settings.retry_attempts < 1:
        errors.append("RETRY_ATTEMPTS must be at least 1")

    if settings.app_env == "production":
        if settings.allowed_origins == "*":
            errors.append("ALLOWED_ORIGINS must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
