"""Application configuration via Pydantic Settings."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite+aiosqlite:///./jukebox.db"

    # Spotify
    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    spotify_redirect_uri: str = "http://127.0.0.1:4000/auth/spotify/callback"
    spotify_accounts_url: str = "https://accounts.spotify.com"
    spotify_api_url: str = "https://api.spotify.com/v1"
    spotify_timeout_seconds: float = 10.0
    app_token_refresh_margin: int = 60  # seconds before expiry

    # Web
    web_origin: str = "http://localhost:3000"  # comma-separated; first one is the post-login redirect
    public_base_url: str = "http://127.0.0.1:4000"

    # Auth / JWT session cookie
    jwt_secret_key: str = "dev-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    session_cookie_name: str = "jukebox_session"
    session_expire_days: int = 7

    # Cache
    search_cache_ttl: int = 60
    album_cache_ttl: int = 300
    cache_max_entries: int = 500

    # Rate limiting
    rate_limit_max_requests: int = 60
    rate_limit_window_seconds: int = 60

    # Uploads
    upload_dir: str = "./uploads"
    avatar_max_bytes: int = 2 * 1024 * 1024

    # Admin dashboard
    admin_username: str = ""
    admin_password_hash: str = ""  # bcrypt, see scripts/hash_admin_password.py

    # App
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 4000
    app_debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.web_origin.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


settings = Settings()
