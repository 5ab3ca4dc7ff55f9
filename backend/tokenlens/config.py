"""
Runtime configuration read from the environment.
"""
import os
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()

DEFAULT_REMOTE_HOST = "https://huggingface.co"
DEFAULT_REMOTE_PATH_TEMPLATE = "/hf/{model}"


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return float(value)


def _host_list(name: str) -> List[str]:
    value = os.getenv(name, "")
    return [host.strip().rstrip("/") for host in value.split(",") if host.strip()]


class Settings:
    """Service settings, resolved once per process."""

    def __init__(
        self,
        cache_max_entries=None,
        cache_ttl=None,
        public_origin=None,
        default_remote_host=None,
        remote_path_template=None,
        fetch_timeout=None,
        log_level=None,
        allowed_remote_hosts=None,
    ):
        """
        Initialize settings, falling back to environment variables.

        Args:
            cache_max_entries: Maximum number of cached tokenizers
            cache_ttl: Seconds a cached tokenizer stays valid, or None for no expiry
            public_origin: Origin of this deployment, used for vocabulary fetches
                when the caller gives no host override
            default_remote_host: Host used when neither an override nor an origin is set
            remote_path_template: Path layout for proxied vocabulary hosts
            fetch_timeout: HTTP timeout in seconds for vocabulary fetches
            log_level: Root logging level
            allowed_remote_hosts: Hosts a caller may name as a vocabulary host
                override; overrides are refused when empty
        """
        self.cache_max_entries = cache_max_entries or int(
            os.getenv("TOKENLENS_CACHE_MAX_ENTRIES", "64")
        )
        self.cache_ttl = cache_ttl if cache_ttl is not None else _optional_float("TOKENLENS_CACHE_TTL")
        self.public_origin = public_origin or os.getenv("TOKENLENS_PUBLIC_ORIGIN") or None
        self.default_remote_host = default_remote_host or os.getenv(
            "TOKENLENS_DEFAULT_REMOTE_HOST", DEFAULT_REMOTE_HOST
        )
        self.remote_path_template = remote_path_template or os.getenv(
            "TOKENLENS_REMOTE_PATH_TEMPLATE", DEFAULT_REMOTE_PATH_TEMPLATE
        )
        self.fetch_timeout = fetch_timeout or float(os.getenv("TOKENLENS_FETCH_TIMEOUT", "30"))
        self.log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
        self.allowed_remote_hosts = (
            allowed_remote_hosts if allowed_remote_hosts is not None
            else _host_list("TOKENLENS_ALLOWED_REMOTE_HOSTS")
        )

        if self.cache_max_entries < 1:
            raise ValueError("TOKENLENS_CACHE_MAX_ENTRIES must be at least 1")
        if self.cache_ttl is not None and self.cache_ttl <= 0:
            raise ValueError("TOKENLENS_CACHE_TTL must be positive when set")


# Global settings instance
settings = Settings()
