from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    APP_NAME: str = "certbootstrap"
    LOG_LEVEL: str = "INFO"
    OTEL_CONSOLE_EXPORT: bool = False

    # Enrollment
    CERTNAME: Optional[str] = None
    PUPPETSERVER_HOSTNAME: str = "puppet"
    SSLDIR: str = "/etc/puppetlabs/puppet/ssl"
    WAITFORCERT: int = 120
    DNS_ALT_NAMES: str = ""

    # CA transport (mirrors curl --retry 5 --retry-delay 2)
    CA_PORT: int = 8140
    HTTP_RETRIES: int = 5
    HTTP_RETRY_DELAY: float = 2.0
    HTTP_TIMEOUT: float = 30.0
    POLL_INTERVAL: int = 10
