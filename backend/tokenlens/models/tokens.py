"""
Value types passed between tokenizers, the segmenter and the API.
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, PositiveInt


class TokenizeOptions(BaseModel):
    """Per-call tokenization options. None means "use the tokenizer default"."""
    model_config = ConfigDict(frozen=True)

    fast_mode: bool = False
    chunk_size: Optional[PositiveInt] = None
    max_tokens: Optional[PositiveInt] = None


class SegmentToken(BaseModel):
    id: int
    idx: int


class Segment(BaseModel):
    """A span of the input text and the tokens it decomposes into."""
    text: str
    tokens: List[SegmentToken] = Field(default_factory=list)

    def shifted(self, offset: int) -> "Segment":
        """Copy of this segment with every token index moved by ``offset``."""
        return Segment(
            text=self.text,
            tokens=[SegmentToken(id=t.id, idx=t.idx + offset) for t in self.tokens],
        )


class TokenizerResult(BaseModel):
    name: str
    tokens: List[int]
    segments: List[Segment] = Field(default_factory=list)
    count: int

    def to_dict(self, count_only=False):
        """Convert the result to a response dictionary."""
        if count_only:
            return {"name": self.name, "count": self.count}
        return {"name": self.name, "tokens": self.tokens, "count": self.count}
