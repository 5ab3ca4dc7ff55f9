"""
Adaptive segmentation: decides when to build segments and chunks long input.
"""
import logging
import time
from typing import List, Optional, Protocol
from tokenlens.models.tokens import Segment, TokenizeOptions, TokenizerResult

logger = logging.getLogger(__name__)


class SegmentationEngine(Protocol):
    """What the segmenter needs from a tokenizer engine."""

    def encode(self, text: str) -> List[int]:
        ...

    def aligned_segments(self, text: str) -> List[Segment]:
        ...


class SegmenterConfig:
    """Thresholds for one tokenizer family."""
    def __init__(
        self,
        trigger_length=10000,
        max_tokens=2000,
        chunk_size=5000
    ):
        if trigger_length < 1 or max_tokens < 1 or chunk_size < 1:
            raise ValueError("Segmenter thresholds must be positive")
        self.trigger_length = trigger_length
        self.max_tokens = max_tokens
        self.chunk_size = chunk_size

    def __repr__(self):
        return (
            f"SegmenterConfig(trigger_length={self.trigger_length}, "
            f"max_tokens={self.max_tokens}, chunk_size={self.chunk_size})"
        )


ENCODING_SEGMENTER_CONFIG = SegmenterConfig(trigger_length=10000, max_tokens=2000, chunk_size=5000)
PRETRAINED_SEGMENTER_CONFIG = SegmenterConfig(trigger_length=5000, max_tokens=1500, chunk_size=3000)


def chunk_text(text: str, chunk_size: int) -> List[str]:
    """
    Split text into contiguous fixed-width slices.

    A slice boundary may fall inside what would otherwise be one token.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    return [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]


class AdaptiveSegmenter:
    """Builds token results with bounded segment-alignment cost."""

    def __init__(self, config=None):
        """Initialize the segmenter with the given thresholds."""
        self.config = config or SegmenterConfig()

    def should_use_fast_mode(
        self,
        text: str,
        token_count: int,
        options: Optional[TokenizeOptions] = None
    ) -> bool:
        """
        Decide whether segments should be skipped.

        Args:
            text: Input text
            token_count: Number of tokens in the full encoding of ``text``
            options: Per-call options

        Returns:
            True when the caller asked for fast mode, the text is longer than
            the trigger length, or the token count is over the limit
        """
        options = options or TokenizeOptions()
        if options.fast_mode:
            return True
        if len(text) > self.config.trigger_length:
            return True
        max_tokens = options.max_tokens or self.config.max_tokens
        return token_count > max_tokens

    def segment(
        self,
        text: str,
        engine: SegmentationEngine,
        options: Optional[TokenizeOptions] = None
    ) -> List[Segment]:
        """
        Compute segments, chunking the text when it is longer than the chunk size.

        Each chunk is aligned on its own and its token indices are moved by
        the number of tokens the engine produces for all earlier chunks,
        each encoded independently.

        Args:
            text: Input text
            engine: Tokenizer engine providing encode and aligned_segments
            options: Per-call options

        Returns:
            List of Segment objects
        """
        options = options or TokenizeOptions()
        chunk_size = options.chunk_size or self.config.chunk_size

        if len(text) <= chunk_size:
            return engine.aligned_segments(text)

        start_time = time.time()
        chunks = chunk_text(text, chunk_size)
        segments = []
        offset = 0

        for chunk in chunks:
            chunk_segments = engine.aligned_segments(chunk)
            if offset:
                chunk_segments = [segment.shifted(offset) for segment in chunk_segments]
            segments.extend(chunk_segments)
            offset += len(engine.encode(chunk))

        elapsed = time.time() - start_time
        logger.debug(
            f"Segmented {len(text)} chars in {len(chunks)} chunks of {chunk_size} "
            f"({len(segments)} segments) in {elapsed:.4f}s"
        )
        return segments

    def run(
        self,
        name: str,
        text: str,
        engine: SegmentationEngine,
        options: Optional[TokenizeOptions] = None
    ) -> TokenizerResult:
        """
        Tokenize the full text and attach segments unless fast mode applies.

        Args:
            name: Tokenizer name reported in the result
            text: Input text
            engine: Engine used for segment alignment
            options: Per-call options

        Returns:
            TokenizerResult
        """
        options = options or TokenizeOptions()
        tokens = list(engine.encode(text))

        if self.should_use_fast_mode(text, len(tokens), options):
            segments = []
        else:
            segments = self.segment(text, engine, options)

        return TokenizerResult(
            name=name,
            tokens=tokens,
            segments=segments,
            count=len(tokens),
        )
