"""
Loader for pretrained tokenizer vocabularies served over HTTP.
"""
import logging
import time
from typing import Optional, Tuple
import httpx
from tokenizers import Tokenizer as HFTokenizer
from tokenlens.config import settings
from tokenlens.errors import LoadError

logger = logging.getLogger(__name__)

TOKENIZER_FILE = "tokenizer.json"
HUB_PATH_TEMPLATE = "/{model}/resolve/{revision}"
DEFAULT_REVISION = "main"


class LoaderConfig:
    """Explicit settings for one vocabulary fetch."""

    def __init__(
        self,
        public_origin=None,
        default_remote_host=None,
        remote_path_template=None,
        timeout=None,
        revision=DEFAULT_REVISION,
        allowed_remote_hosts=None
    ):
        self.public_origin = public_origin
        self.default_remote_host = default_remote_host or settings.default_remote_host
        self.remote_path_template = remote_path_template or settings.remote_path_template
        self.timeout = timeout or settings.fetch_timeout
        self.revision = revision
        if allowed_remote_hosts is None:
            allowed_remote_hosts = settings.allowed_remote_hosts
        self.allowed_remote_hosts = [host.rstrip("/") for host in allowed_remote_hosts]

    def allows_host(self, host: str) -> bool:
        """Check whether a caller-provided vocabulary host is on the allowlist."""
        return host.rstrip("/") in self.allowed_remote_hosts

    @classmethod
    def from_settings(cls, app_settings=None):
        app_settings = app_settings or settings
        return cls(
            public_origin=app_settings.public_origin,
            default_remote_host=app_settings.default_remote_host,
            remote_path_template=app_settings.remote_path_template,
            timeout=app_settings.fetch_timeout,
            allowed_remote_hosts=app_settings.allowed_remote_hosts,
        )


def resolve_remote_host(host_override: Optional[str], config: LoaderConfig) -> Tuple[str, str]:
    """
    Pick the vocabulary host and path template.

    Priority: explicit override, then this deployment's public origin, then
    the default host. Overrides and the origin serve the proxied layout; the
    default host uses the Hub's own layout.

    Returns:
        (host, path_template)
    """
    if host_override:
        logger.info(f"Using caller-provided vocabulary host: {host_override}")
        return host_override, config.remote_path_template
    if config.public_origin:
        logger.info(f"Using public origin as vocabulary host: {config.public_origin}")
        return config.public_origin, config.remote_path_template
    logger.info(f"No vocabulary host provided, using default: {config.default_remote_host}")
    return config.default_remote_host, HUB_PATH_TEMPLATE


def vocabulary_url(model: str, host_override: Optional[str], config: LoaderConfig,
                   filename: str = TOKENIZER_FILE) -> str:
    host, template = resolve_remote_host(host_override, config)
    path = template.format(model=model, revision=config.revision).strip("/")
    return f"{host.rstrip('/')}/{path}/{filename}"


async def fetch_tokenizer(
    model: str,
    host_override: Optional[str] = None,
    config: Optional[LoaderConfig] = None,
    client: Optional[httpx.AsyncClient] = None
) -> HFTokenizer:
    """
    Fetch and parse a tokenizer.json without touching the local filesystem.

    Args:
        model: Open-source model identifier, e.g. "Qwen/Qwen2.5-72B"
        host_override: Host to fetch from instead of the configured ones
        config: Loader settings, defaults to the process settings
        client: HTTP client to reuse; a short-lived one is created otherwise

    Returns:
        A ready tokenizers.Tokenizer

    Raises:
        LoadError: If the fetch fails or the artifact cannot be parsed
    """
    config = config or LoaderConfig.from_settings()
    url = vocabulary_url(model, host_override, config)

    logger.info(f'Start loading "{model}" {TOKENIZER_FILE}')
    start_time = time.time()
    try:
        if client is not None:
            response = await client.get(url, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=config.timeout) as owned_client:
                response = await owned_client.get(url, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(f"Vocabulary fetch for {model} returned {e.response.status_code}: {url}")
        raise LoadError(
            f"Failed to fetch tokenizer for {model}: HTTP {e.response.status_code}", model
        ) from e
    except httpx.HTTPError as e:
        logger.error(f"Vocabulary fetch for {model} failed: {str(e)}")
        raise LoadError(f"Failed to fetch tokenizer for {model}: {str(e)}", model) from e

    try:
        tokenizer = HFTokenizer.from_str(response.text)
    except Exception as e:
        logger.exception(f"Malformed tokenizer artifact for {model}")
        raise LoadError(f"Malformed tokenizer artifact for {model}: {str(e)}", model) from e

    elapsed = time.time() - start_time
    logger.info(f'Done loading "{model}" {TOKENIZER_FILE} in {elapsed:.2f}s')
    return tokenizer
