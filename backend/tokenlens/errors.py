"""
Errors raised while resolving tokenizers and tokenizing text.
"""
from typing import Optional


class TokenizerError(Exception):
    """Base class for tokenizer failures."""

    def __init__(self, message: str, identifier: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.identifier = identifier

    def to_dict(self):
        return {"error": self.message, "identifier": self.identifier}


class InvalidIdentifierError(TokenizerError):
    """The identifier is not a known model or encoding."""


class UnsupportedModelError(TokenizerError):
    """The identifier is known, but the encoding engine cannot serve it."""


class LoadError(TokenizerError):
    """A pretrained vocabulary could not be fetched or parsed."""


class EncodingError(TokenizerError):
    """The engine failed while encoding otherwise valid input."""
