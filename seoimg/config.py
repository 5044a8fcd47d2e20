"""Configuration loaded from environment (.env) and defaults."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Locate the project root .env file regardless of CWD
_THIS_DIR = Path(__file__).resolve().parent          # seoimg/
_PROJECT_ROOT = _THIS_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Image-generation webhook (accepts {image_type, image_detail}, returns {image})
    seoimg_webhook_url: str = "http://localhost:5678/webhook/generate-image"
    seoimg_webhook_timeout: float = 60.0

    # Bulk queue pacing and housekeeping (seconds)
    seoimg_inter_request_delay: float = 2.0
    seoimg_run_stale_after: float = 60 * 60
    seoimg_stale_check_interval: float = 60.0
    seoimg_completion_grace: float = 2.0

    # Credit prices per image and opening balance for new accounts
    seoimg_blog_cost: int = 5
    seoimg_infographic_cost: int = 10
    seoimg_welcome_credits: int = 50

    # Data directory: ledger, notifications, run snapshots, exports
    seoimg_data_dir: str = "./data"

    # Postgres URL for the credit ledger; file-based ledger when unset
    seoimg_database_url: str | None = None

    # API bearer tokens: "token:account_id,token2:account_id2"
    seoimg_api_tokens: str = ""

    # Per-account limit on credit-spending API calls (generate, run, resume)
    seoimg_rate_limit_max: int = 30
    seoimg_rate_limit_window: float = 60.0

    # CORS origins (comma-separated). Defaults to localhost dev.
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Server port (hosting platforms inject PORT)
    port: int = 8000

    @property
    def data_dir(self) -> Path:
        """Data directory as Path; relative paths resolve against the project root."""
        p = Path(self.seoimg_data_dir)
        if not p.is_absolute():
            return (_PROJECT_ROOT / p).resolve()
        return p.resolve()

    @property
    def runs_dir(self) -> Path:
        return self.data_dir / "runs"

    @property
    def notifications_dir(self) -> Path:
        return self.data_dir / "notifications"

    @property
    def exports_dir(self) -> Path:
        return self.data_dir / "exports"

    @property
    def credit_costs(self) -> dict[str, int]:
        """Per-item cost keyed by template type value."""
        return {"blog": self.seoimg_blog_cost, "infographic": self.seoimg_infographic_cost}

    @property
    def api_token_map(self) -> dict[str, str]:
        """Parse comma-separated token:account pairs into a dict."""
        tokens: dict[str, str] = {}
        for pair in self.seoimg_api_tokens.split(","):
            token, sep, account = pair.strip().partition(":")
            if sep and token and account:
                tokens[token] = account
        return tokens

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def ensure_dirs(self) -> None:
        """Ensure all data directories exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.runs_dir.mkdir(parents=True, exist_ok=True)
        self.notifications_dir.mkdir(parents=True, exist_ok=True)
        self.exports_dir.mkdir(parents=True, exist_ok=True)


def get_settings() -> Settings:
    settings = Settings()
    settings.ensure_dirs()
    return settings
