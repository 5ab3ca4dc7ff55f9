"""
In-process cache of constructed tokenizers.
"""
import asyncio
import logging
import time
from collections import OrderedDict
from typing import Dict, Optional
from tokenlens.config import settings
from tokenlens.errors import InvalidIdentifierError, TokenizerError
from tokenlens.models.catalog import is_valid_option
from tokenlens.services.loader import LoaderConfig
from tokenlens.services.tokenizer import Tokenizer, create_tokenizer

logger = logging.getLogger(__name__)


class CacheEntry:
    __slots__ = ("tokenizer", "created_at")

    def __init__(self, tokenizer: Tokenizer, created_at: float):
        self.tokenizer = tokenizer
        self.created_at = created_at


class TokenizerCache:
    """
    Registry of ready tokenizers keyed by identifier and vocabulary host.

    Concurrent misses on one key share a single construction. Failed
    constructions are never stored. Entries are evicted least recently used
    first once ``max_entries`` is reached, and expire after ``ttl`` seconds
    when a ttl is set. Evicted and expired entries are only dropped, since a
    caller may still hold the tokenizer; explicit ``delete`` and ``clear``
    release tokenizers that hold engine resources.
    """

    def __init__(self, max_entries=None, ttl=None, factory=None, loader_config=None,
                 clock=time.monotonic):
        """
        Initialize the tokenizer cache.

        Args:
            max_entries: Maximum number of cached tokenizers
            ttl: Seconds an entry stays valid, or None for no expiry
            factory: Coroutine function building a tokenizer, defaults to create_tokenizer
            loader_config: LoaderConfig passed to the factory for open-source models
            clock: Monotonic time source
        """
        self.max_entries = max_entries or settings.cache_max_entries
        self.ttl = ttl if ttl is not None else settings.cache_ttl
        self.factory = factory or create_tokenizer
        self.loader_config = loader_config or LoaderConfig.from_settings()
        self.clock = clock

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._inflight: Dict[str, asyncio.Future] = {}

        self.hits = 0
        self.misses = 0
        self.loads = 0
        self.evictions = 0

    @staticmethod
    def cache_key(identifier: str, remote_host: Optional[str] = None) -> str:
        return f"{identifier}_{remote_host or 'default'}"

    def get(self, identifier: str, remote_host: Optional[str] = None) -> Optional[Tokenizer]:
        """
        Get a cached tokenizer without constructing one.

        Args:
            identifier: Model or encoding name
            remote_host: Vocabulary host override the entry was created with

        Returns:
            The cached tokenizer, or None if absent or expired
        """
        key = self.cache_key(identifier, remote_host)
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._expired(entry):
            logger.info(f"Cached tokenizer '{key}' expired")
            self._discard(key)
            return None

        self._entries.move_to_end(key)
        return entry.tokenizer

    async def get_or_create(self, identifier: str, remote_host: Optional[str] = None) -> Tokenizer:
        """
        Return the cached tokenizer for an identifier, constructing it on a miss.

        Args:
            identifier: Model or encoding name
            remote_host: Vocabulary host override for open-source models

        Returns:
            A ready Tokenizer; every caller for the same key gets the same instance

        Raises:
            InvalidIdentifierError: If the identifier is not in the catalog, or the
                remote host is not on the allowlist
            UnsupportedModelError: If the encoding engine rejects the model
            LoadError: If a vocabulary cannot be loaded
        """
        key = self.cache_key(identifier, remote_host)
        tokenizer = self.get(identifier, remote_host)
        if tokenizer is not None:
            self.hits += 1
            logger.debug(f"Returning cached tokenizer '{key}'")
            return tokenizer

        if not is_valid_option(identifier):
            raise InvalidIdentifierError("Invalid model or encoding", identifier)
        if remote_host and not self.loader_config.allows_host(remote_host):
            logger.warning(f"Refusing vocabulary host '{remote_host}' for {identifier}")
            raise InvalidIdentifierError("Remote host not allowed", identifier)

        # Registering the in-flight task happens without suspension, so a
        # second miss on the same key always finds it
        task = self._inflight.get(key)
        if task is None:
            self.misses += 1
            task = asyncio.ensure_future(self._construct(key, identifier, remote_host))
            self._inflight[key] = task
        else:
            logger.debug(f"Waiting for in-flight construction of '{key}'")

        return await asyncio.shield(task)

    async def _construct(self, key: str, identifier: str, remote_host: Optional[str]) -> Tokenizer:
        start_time = time.time()
        try:
            tokenizer = await self.factory(
                identifier,
                remote_host=remote_host,
                loader_config=self.loader_config,
            )
        except TokenizerError as e:
            logger.error(f"Failed to construct tokenizer '{key}': {e.message}")
            raise
        except Exception:
            logger.exception(f"Unexpected error constructing tokenizer '{key}'")
            raise
        finally:
            self._inflight.pop(key, None)

        elapsed = time.time() - start_time
        self.loads += 1
        self._store(key, tokenizer)
        logger.info(f"Cached tokenizer '{key}' (loaded in {elapsed:.2f}s)")
        return tokenizer

    def _store(self, key: str, tokenizer: Tokenizer) -> None:
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(tokenizer, self.clock())

        while len(self._entries) > self.max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            self.evictions += 1
            logger.info(f"Evicting tokenizer '{evicted_key}' (cache holds {self.max_entries})")

    def _expired(self, entry: CacheEntry) -> bool:
        return self.ttl is not None and self.clock() - entry.created_at >= self.ttl

    def _discard(self, key: str) -> bool:
        if self._entries.pop(key, None) is None:
            return False
        self.evictions += 1
        return True

    @staticmethod
    def _release(key: str, tokenizer: Tokenizer) -> None:
        if tokenizer.releasable:
            logger.debug(f"Releasing tokenizer '{key}'")
            tokenizer.release()

    def exists(self, identifier: str, remote_host: Optional[str] = None) -> bool:
        """Check whether a live entry exists for the identifier and host."""
        return self.get(identifier, remote_host) is not None

    def delete(self, identifier: str, remote_host: Optional[str] = None) -> bool:
        """
        Remove an entry, releasing its tokenizer.

        Returns:
            True if an entry was removed, False otherwise
        """
        entry = self._entries.pop(self.cache_key(identifier, remote_host), None)
        if entry is None:
            return False
        self._release(self.cache_key(identifier, remote_host), entry.tokenizer)
        return True

    def clear(self) -> int:
        """
        Remove every entry, releasing tokenizers that hold engine resources.

        Returns:
            Number of entries removed
        """
        count = len(self._entries)
        while self._entries:
            key, entry = self._entries.popitem(last=False)
            self._release(key, entry.tokenizer)
        if count:
            logger.info(f"Cleared {count} cached tokenizers")
        return count

    def stats(self) -> Dict[str, int]:
        return {
            "entries": len(self._entries),
            "in_flight": len(self._inflight),
            "hits": self.hits,
            "misses": self.misses,
            "loads": self.loads,
            "evictions": self.evictions,
        }

    def __len__(self):
        return len(self._entries)

    def __contains__(self, key: str):
        return key in self._entries


# Global tokenizer cache instance
tokenizer_cache = TokenizerCache()


def get_tokenizer_cache() -> TokenizerCache:
    """Dependency returning the process-wide tokenizer cache."""
    return tokenizer_cache


async def resolve_tokenizer(identifier: str, remote_host: Optional[str] = None) -> Tokenizer:
    """Resolve a tokenizer through the process-wide cache."""
    return await tokenizer_cache.get_or_create(identifier, remote_host)
