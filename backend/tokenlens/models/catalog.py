"""
Catalog of the model and encoding identifiers the service recognizes.
"""
from enum import Enum
from typing import List


class IdentifierKind(str, Enum):
    """Category an identifier belongs to."""
    ENCODING = "encoding"
    CHAT_OR_LEGACY_MODEL = "chat_or_legacy_model"
    OPEN_SOURCE_MODEL = "open_source_model"
    INVALID = "invalid"


OAI_ENCODINGS = (
    "gpt2",
    "r50k_base",
    "p50k_base",
    "p50k_edit",
    "cl100k_base",
    "o200k_base",
)

CHAT_MODELS = (
    "gpt-4o",
    "gpt-3.5-turbo",
    "gpt-4",
    "gpt-4-32k",
    "gpt-4-1106-preview",
)

LEGACY_TEXT_MODELS = (
    "text-davinci-003",
    "text-davinci-002",
    "text-davinci-001",
    "text-curie-001",
    "text-babbage-001",
    "text-ada-001",
    "davinci",
    "curie",
    "babbage",
    "ada",
    "code-davinci-002",
    "code-davinci-001",
    "code-cushman-002",
    "code-cushman-001",
    "davinci-codex",
    "cushman-codex",
    "text-davinci-edit-001",
    "code-davinci-edit-001",
)

EMBEDDING_MODELS = (
    "text-embedding-ada-002",
    "text-embedding-3-small",
    "text-embedding-3-large",
)

LEGACY_EMBEDDING_MODELS = (
    "text-similarity-davinci-001",
    "text-similarity-curie-001",
    "text-similarity-babbage-001",
    "text-similarity-ada-001",
    "text-search-davinci-doc-001",
    "text-search-curie-doc-001",
    "text-search-babbage-doc-001",
    "text-search-ada-doc-001",
    "code-search-babbage-code-001",
    "code-search-ada-code-001",
)

OAI_MODELS = CHAT_MODELS + LEGACY_TEXT_MODELS + LEGACY_EMBEDDING_MODELS + EMBEDDING_MODELS

OPEN_SOURCE_MODELS = (
    "deepseek-ai/DeepSeek-R1",
    "Qwen/Qwen2.5-72B",
    "01-ai/Yi-6B",
    "openai/whisper-tiny",
)

# Families whose engine prepends a pseudo-token that the segment view hides
REMOVE_FIRST_TOKEN_MODELS = (
    "meta-llama/Llama-2-7b-hf",
    "codellama/CodeLlama-7b-hf",
    "codellama/CodeLlama-70b-hf",
)

# Embedding models the encoding engine does not know about yet
TOO_NEW_MODELS = (
    "text-embedding-3-small",
    "text-embedding-3-large",
)

ALL_MODELS = OAI_MODELS + OPEN_SOURCE_MODELS

POPULAR = [
    "cl100k_base",
    "o200k_base",
    "gpt-4-1106-preview",
    "gpt-3.5-turbo",
]

_ENCODING_SET = frozenset(OAI_ENCODINGS)
_OAI_MODEL_SET = frozenset(OAI_MODELS)
_OPEN_SOURCE_SET = frozenset(OPEN_SOURCE_MODELS)


def classify(identifier) -> IdentifierKind:
    """
    Classify an identifier.

    Encodings are checked before models, so a string is never reported in
    two categories. Anything that is not a string is invalid.
    """
    if not isinstance(identifier, str):
        return IdentifierKind.INVALID
    if identifier in _ENCODING_SET:
        return IdentifierKind.ENCODING
    if identifier in _OAI_MODEL_SET:
        return IdentifierKind.CHAT_OR_LEGACY_MODEL
    if identifier in _OPEN_SOURCE_SET:
        return IdentifierKind.OPEN_SOURCE_MODEL
    return IdentifierKind.INVALID


def is_valid_option(identifier) -> bool:
    return classify(identifier) is not IdentifierKind.INVALID


def is_encoding(identifier) -> bool:
    return classify(identifier) is IdentifierKind.ENCODING


def is_model(identifier) -> bool:
    return classify(identifier) in (
        IdentifierKind.CHAT_OR_LEGACY_MODEL,
        IdentifierKind.OPEN_SOURCE_MODEL,
    )


def is_chat_model(identifier) -> bool:
    return identifier in CHAT_MODELS


def removes_first_token(name: str) -> bool:
    return name in REMOVE_FIRST_TOKEN_MODELS


def all_options() -> List[str]:
    """Every accepted identifier: models first, then encodings."""
    return list(ALL_MODELS) + list(OAI_ENCODINGS)
