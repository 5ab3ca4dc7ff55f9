from .catalog import IdentifierKind, classify, is_valid_option, POPULAR
from .tokens import TokenizeOptions, Segment, SegmentToken, TokenizerResult
