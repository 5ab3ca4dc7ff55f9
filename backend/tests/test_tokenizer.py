"""
Unit tests for the tokenizer adapters.
"""
import pytest
import sys
import os
import tiktoken

# Add the parent directory to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tokenizers import Tokenizer as HFTokenizer, models, pre_tokenizers, processors
from tokenlens.errors import EncodingError, InvalidIdentifierError, LoadError, UnsupportedModelError
from tokenlens.models.tokens import TokenizeOptions
from tokenlens.services.tokenizer import (
    PretrainedTokenizer,
    TiktokenTokenizer,
    TokenizerKind,
    create_tokenizer,
)
from reference_engines import ByteEncoding


@pytest.fixture
def byte_tiktoken(monkeypatch):
    """Serve every tiktoken encoding as a byte-level stand-in."""
    monkeypatch.setattr(tiktoken, "get_encoding", lambda name: ByteEncoding())


@pytest.fixture
def cl100k():
    """The real cl100k_base ranks; skipped when they cannot be downloaded."""
    try:
        return tiktoken.get_encoding("cl100k_base")
    except Exception as e:
        pytest.skip(f"tiktoken ranks unavailable: {e}")


@pytest.fixture
def llama_style_tokenizer():
    vocab = {"[UNK]": 0, "<s>": 1, "hello": 2, "world": 3}
    tokenizer = HFTokenizer(models.WordLevel(vocab=vocab, unk_token="[UNK]"))
    tokenizer.pre_tokenizer = pre_tokenizers.Whitespace()
    tokenizer.post_processor = processors.TemplateProcessing(
        single="<s> $A",
        special_tokens=[("<s>", 1)],
    )
    return tokenizer


@pytest.mark.parametrize("model", ["text-embedding-3-small", "text-embedding-3-large"])
def test_too_new_models_are_rejected(model):
    """Test that catalog-valid embedding models fail at construction."""
    with pytest.raises(UnsupportedModelError) as exc_info:
        TiktokenTokenizer(model)
    assert exc_info.value.identifier == model


@pytest.mark.parametrize("identifier", ["not-a-real-model", "Qwen/Qwen2.5-72B"])
def test_tiktoken_rejects_non_openai_identifiers(identifier):
    with pytest.raises(InvalidIdentifierError):
        TiktokenTokenizer(identifier)


def test_encoding_load_failure_is_load_error(monkeypatch):
    def fail(name):
        raise ConnectionError("no network")

    monkeypatch.setattr(tiktoken, "get_encoding", fail)
    with pytest.raises(LoadError):
        TiktokenTokenizer("cl100k_base")


def test_tiktoken_tokenize_with_segments(byte_tiktoken):
    tokenizer = TiktokenTokenizer("p50k_base")
    result = tokenizer.tokenize("héllo")

    assert tokenizer.kind is TokenizerKind.ENCODING
    assert tokenizer.releasable
    assert result.name == "bytes"
    assert result.count == len(result.tokens) == 6
    assert [segment.text for segment in result.segments] == ["h", "é", "l", "l", "o"]


def test_tiktoken_chunked_segments(byte_tiktoken):
    """Test that chunked alignment rebuilds the text with non-decreasing indices."""
    tokenizer = TiktokenTokenizer("p50k_base")
    text = "héllo wörld 你好 🚀" * 3
    result = tokenizer.tokenize(text, TokenizeOptions(chunk_size=4))

    assert result.count == len(text.encode("utf-8"))
    assert "".join(segment.text for segment in result.segments) == text
    indices = [token.idx for segment in result.segments for token in segment.tokens]
    assert indices == sorted(indices)
    assert indices == list(range(result.count))


def test_tiktoken_lone_surrogate_round_trips_text(byte_tiktoken):
    tokenizer = TiktokenTokenizer("p50k_base")
    result = tokenizer.tokenize("ab\ud800cd")

    assert "".join(segment.text for segment in result.segments) == "ab\ud800cd"
    assert result.count == 7


def test_tiktoken_fast_mode(byte_tiktoken):
    tokenizer = TiktokenTokenizer("gpt2")
    text = "x" * 50
    result = tokenizer.tokenize(text, TokenizeOptions(fast_mode=True))

    assert result.segments == []
    assert result.count == 50
    assert result.tokens == tokenizer.tokenize(text).tokens


def test_tiktoken_release(byte_tiktoken):
    """Test that a released tokenizer refuses to encode and tolerates a second release."""
    tokenizer = TiktokenTokenizer("r50k_base")
    tokenizer.release()

    assert tokenizer.released
    with pytest.raises(EncodingError):
        tokenizer.tokenize("hello")
    tokenizer.release()


def test_tiktoken_encode_modes(byte_tiktoken):
    tokenizer = TiktokenTokenizer("gpt2")
    assert tokenizer.encode("ab", mode="default") == [97, 98]
    with pytest.raises(ValueError):
        tokenizer.encode("ab", mode="none")


def test_chat_model_special_tokens(cl100k):
    """Test that chat delimiters map to their reserved ids."""
    tokenizer = TiktokenTokenizer("gpt-4")
    result = tokenizer.tokenize("<|im_start|>user<|im_sep|>hi<|im_end|>")

    assert result.name == "cl100k_base"
    assert result.tokens[0] == 100264
    assert 100265 in result.tokens
    assert 100266 in result.tokens
    assert "".join(segment.text for segment in result.segments) == "<|im_start|>user<|im_sep|>hi<|im_end|>"


def test_encoding_tokens_match_tiktoken(cl100k):
    tokenizer = TiktokenTokenizer("cl100k_base")
    text = "Hello, world! 你好"
    result = tokenizer.tokenize(text)

    assert result.tokens == cl100k.encode(text, allowed_special="all")
    assert result.count == len(result.tokens)
    assert "".join(segment.text for segment in result.segments) == text


def test_legacy_model_uses_model_encoding(cl100k):
    try:
        tokenizer = TiktokenTokenizer("text-davinci-003")
    except LoadError as e:
        pytest.skip(f"tiktoken ranks unavailable: {e}")
    assert tokenizer.name == "p50k_base"


def test_pretrained_tokenizer_counts_marker_but_hides_it(llama_style_tokenizer):
    """Test that the remove-first-token families keep the marker in tokens only."""
    tokenizer = PretrainedTokenizer(llama_style_tokenizer, "meta-llama/Llama-2-7b-hf")
    result = tokenizer.tokenize("hello world")

    assert tokenizer.kind is TokenizerKind.PRETRAINED
    assert not tokenizer.releasable
    assert tokenizer.remove_first_token
    assert result.tokens == [1, 2, 3]
    assert result.count == 3
    assert [[t.id for t in segment.tokens] for segment in result.segments] == [[2], [3]]


def test_pretrained_tokenizer_keeps_marker_for_other_models(llama_style_tokenizer):
    tokenizer = PretrainedTokenizer(llama_style_tokenizer, "01-ai/Yi-6B")
    result = tokenizer.tokenize("hello world")

    assert not tokenizer.remove_first_token
    assert [[t.id for t in segment.tokens] for segment in result.segments] == [[1, 2], [3]]


def test_pretrained_tokenizer_chunks_long_text(llama_style_tokenizer):
    tokenizer = PretrainedTokenizer(llama_style_tokenizer, "01-ai/Yi-6B")
    text = "hello world " * 5
    result = tokenizer.tokenize(text, TokenizeOptions(chunk_size=12))

    assert "".join(segment.text for segment in result.segments) == text
    indices = [t.idx for segment in result.segments for t in segment.tokens]
    assert indices == sorted(indices)
    assert result.count == 11


@pytest.mark.asyncio
async def test_create_tokenizer_rejects_invalid_identifier():
    with pytest.raises(InvalidIdentifierError):
        await create_tokenizer("not-a-real-model")


@pytest.mark.asyncio
async def test_create_tokenizer_builds_encoding_adapter(byte_tiktoken):
    tokenizer = await create_tokenizer("o200k_base")
    assert isinstance(tokenizer, TiktokenTokenizer)
