import os

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "ghttpping"
    APP_VERSION: str = "0.2.0"
    ENVIRONMENT: str = "development"

    CORS_ORIGINS: str = "http://localhost:5173"

    # DNS
    DNS_TIMEOUT: float = 3.0
    DNS_SANITY_DOMAIN: str = "example.com"
    DNS_SERVER_DISCOVERY_TIMEOUT: float = 5.0

    # Probes (seconds). PROBE_GRACE_SECONDS bounds scheduling slack on top of a deadline.
    PROBE_TIMEOUT: float = 10.0
    PROBE_GRACE_SECONDS: float = 1.0
    MAX_BODY_BYTES: int = 65536
    USER_AGENT: str = "ghttpping/0.2"

    # Global IP echo endpoints
    GLOBAL_IP_TIMEOUT: float = 2.0
    ECHO_IPV4_URL: str = "https://getipv4.0nyx.net/json"
    ECHO_IPV6_URL: str = "https://getipv6.0nyx.net/json"
    ECHO_IGNORE_TLS_ERRORS: bool = False

    MAX_URL_LENGTH: int = 2048

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()

_env_flag = os.getenv("GHTTPPING_ENV")
if _env_flag:
    settings.ENVIRONMENT = _env_flag
