"""
Tokenizer adapters over tiktoken encodings and pretrained Hugging Face vocabularies.
"""
import logging
from enum import Enum
from typing import List, Optional
import tiktoken
from tokenlens.errors import (
    EncodingError,
    InvalidIdentifierError,
    LoadError,
    TokenizerError,
    UnsupportedModelError,
)
from tokenlens.models.catalog import (
    IdentifierKind,
    TOO_NEW_MODELS,
    classify,
    removes_first_token,
)
from tokenlens.models.tokens import Segment, TokenizeOptions, TokenizerResult
from tokenlens.services.chunker import (
    AdaptiveSegmenter,
    ENCODING_SEGMENTER_CONFIG,
    PRETRAINED_SEGMENTER_CONFIG,
)
from tokenlens.services.loader import LoaderConfig, fetch_tokenizer
from tokenlens.services.segments import pretrained_segments, tiktoken_segments

logger = logging.getLogger(__name__)

# Conversation delimiters added on top of the base encodings used by chat models
CL100K_CHAT_SPECIAL_TOKENS = {
    "<|im_start|>": 100264,
    "<|im_end|>": 100265,
    "<|im_sep|>": 100266,
}
O200K_CHAT_SPECIAL_TOKENS = {
    "<|im_start|>": 200264,
    "<|im_end|>": 200265,
    "<|im_sep|>": 200266,
}

CHAT_MODEL_ENCODINGS = {
    "gpt-3.5-turbo": ("cl100k_base", CL100K_CHAT_SPECIAL_TOKENS),
    "gpt-4": ("cl100k_base", CL100K_CHAT_SPECIAL_TOKENS),
    "gpt-4-32k": ("cl100k_base", CL100K_CHAT_SPECIAL_TOKENS),
    "gpt-4o": ("o200k_base", O200K_CHAT_SPECIAL_TOKENS),
}


class TokenizerKind(str, Enum):
    ENCODING = "encoding"
    PRETRAINED = "pretrained"


class Tokenizer:
    """
    Common contract for every tokenizer family.

    Subclasses declare their kind, whether they hold a resource that must
    be released, and the thresholds their segmenter uses.
    """
    kind: TokenizerKind
    releasable = False
    segmenter_config = ENCODING_SEGMENTER_CONFIG

    def __init__(self, name: str):
        self.name = name
        self.segmenter = AdaptiveSegmenter(self.segmenter_config)

    def encode(self, text: str) -> List[int]:
        raise NotImplementedError

    def aligned_segments(self, text: str) -> List[Segment]:
        raise NotImplementedError

    def tokenize(self, text: str, options: Optional[TokenizeOptions] = None) -> TokenizerResult:
        """
        Tokenize text, attaching segments unless fast mode applies.

        Args:
            text: Input text
            options: Per-call options

        Returns:
            TokenizerResult with count == len(tokens)

        Raises:
            EncodingError: If the engine fails on the input
        """
        try:
            return self.segmenter.run(self.name, text, self, options)
        except TokenizerError:
            raise
        except Exception as e:
            logger.exception(f"Tokenizer {self.name} failed to encode input")
            raise EncodingError(f"Encoding failed for {self.name}: {str(e)}", self.name) from e

    def release(self) -> None:
        """Free engine resources. Only releasable tokenizers hold any."""

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"


class TiktokenTokenizer(Tokenizer):
    """Byte-pair encoding tokenizer backed by tiktoken."""
    kind = TokenizerKind.ENCODING
    releasable = True
    segmenter_config = ENCODING_SEGMENTER_CONFIG

    def __init__(self, model: str):
        """
        Build the encoding for a model or encoding name.

        Raises:
            UnsupportedModelError: If tiktoken cannot serve a catalog model
            InvalidIdentifierError: If the identifier is not an OpenAI model or encoding
            LoadError: If tiktoken cannot load the BPE ranks
        """
        identifier_kind = classify(model)
        if identifier_kind not in (IdentifierKind.CHAT_OR_LEGACY_MODEL, IdentifierKind.ENCODING):
            raise InvalidIdentifierError("Invalid model or encoding", model)
        if model in TOO_NEW_MODELS:
            raise UnsupportedModelError("Model may be too new", model)

        try:
            if identifier_kind is IdentifierKind.ENCODING:
                encoding = tiktoken.get_encoding(model)
            else:
                encoding = self._encoding_for_model(model)
        except TokenizerError:
            raise
        except Exception as e:
            # tiktoken downloads BPE ranks on first use
            logger.exception(f"Failed to load tiktoken encoding for {model}")
            raise LoadError(f"Failed to load encoding for {model}: {str(e)}", model) from e

        super().__init__(encoding.name or model)
        self.model = model
        self._encoding = encoding
        logger.info(f"Created tiktoken tokenizer {self.name} for {model}")

    @staticmethod
    def _encoding_for_model(model: str):
        if model in CHAT_MODEL_ENCODINGS:
            base_name, special_tokens = CHAT_MODEL_ENCODINGS[model]
            base = tiktoken.get_encoding(base_name)
            return tiktoken.Encoding(
                name=base.name,
                pat_str=base._pat_str,
                mergeable_ranks=base._mergeable_ranks,
                special_tokens={**base._special_tokens, **special_tokens},
            )
        try:
            return tiktoken.encoding_for_model(model)
        except KeyError as e:
            raise UnsupportedModelError(f"tiktoken has no encoding for {model}", model) from e

    @property
    def encoding(self):
        if self._encoding is None:
            raise EncodingError(f"Tokenizer {self.name} has been released", self.name)
        return self._encoding

    @property
    def released(self) -> bool:
        return self._encoding is None

    def encode(self, text: str, mode: str = "all") -> List[int]:
        """Encode text; mode "all" recognizes special tokens, "default" rejects them."""
        if mode == "all":
            return self.encoding.encode(text, allowed_special="all")
        if mode == "default":
            return self.encoding.encode(text)
        raise ValueError(f"Unknown encode mode: {mode}")

    def aligned_segments(self, text: str) -> List[Segment]:
        return tiktoken_segments(self.encoding, text)

    def release(self) -> None:
        if self._encoding is None:
            logger.warning(f"Tokenizer {self.name} was already released")
            return
        self._encoding = None
        logger.info(f"Released tiktoken tokenizer {self.name} ({self.model})")


class PretrainedTokenizer(Tokenizer):
    """Open-source model tokenizer backed by a Hugging Face tokenizer.json."""
    kind = TokenizerKind.PRETRAINED
    releasable = False
    segmenter_config = PRETRAINED_SEGMENTER_CONFIG

    def __init__(self, tokenizer, name: str):
        super().__init__(name)
        self._tokenizer = tokenizer
        self.remove_first_token = removes_first_token(name)

    @classmethod
    async def load(
        cls,
        model: str,
        host_override: Optional[str] = None,
        config: Optional[LoaderConfig] = None,
        client=None
    ) -> "PretrainedTokenizer":
        """
        Fetch the vocabulary for an open-source model and wrap it.

        Raises:
            LoadError: If the vocabulary cannot be fetched or parsed
        """
        hf_tokenizer = await fetch_tokenizer(model, host_override, config=config, client=client)
        logger.info(f"Loaded tokenizer {model}")
        return cls(hf_tokenizer, model)

    def encode(self, text: str) -> List[int]:
        return list(self._tokenizer.encode(text).ids)

    def aligned_segments(self, text: str) -> List[Segment]:
        return pretrained_segments(self._tokenizer, text, self.remove_first_token)


async def create_tokenizer(
    identifier: str,
    remote_host: Optional[str] = None,
    loader_config: Optional[LoaderConfig] = None,
    client=None
) -> Tokenizer:
    """
    Construct the tokenizer matching an identifier.

    Args:
        identifier: Model or encoding name
        remote_host: Vocabulary host override for open-source models
        loader_config: Loader settings for open-source models
        client: Optional shared httpx.AsyncClient

    Raises:
        InvalidIdentifierError: If the identifier is not in the catalog
        UnsupportedModelError: If the encoding engine rejects the model
        LoadError: If a vocabulary cannot be loaded
    """
    identifier_kind = classify(identifier)
    if identifier_kind is IdentifierKind.INVALID:
        raise InvalidIdentifierError("Invalid model or encoding", identifier)

    logger.info(
        f"Creating tokenizer {identifier} "
        + (f"with remote host {remote_host}" if remote_host else "without remote host")
    )
    if identifier_kind is IdentifierKind.OPEN_SOURCE_MODEL:
        return await PretrainedTokenizer.load(identifier, remote_host, config=loader_config, client=client)
    return TiktokenTokenizer(identifier)
