"""
Native segment alignment for each tokenizer engine.

Both functions return segments whose texts concatenate back to the input
and whose token indices count up from zero in encode order.
"""
from typing import List
from tokenlens.models.tokens import Segment, SegmentToken


def tiktoken_segments(encoding, text: str) -> List[Segment]:
    """
    Group BPE tokens into segments that decode to whole characters.

    A single character can span several byte-level tokens, so token bytes
    are accumulated until they form valid UTF-8. Segment texts are sliced
    from the source, since tiktoken encodes a lone surrogate as U+FFFD.

    Args:
        encoding: A tiktoken Encoding
        text: Text to align

    Returns:
        List of Segment objects
    """
    tokens = encoding.encode(text, allowed_special="all")
    segments = []
    pending_bytes = b""
    pending_tokens = []
    cursor = 0

    for idx, token_id in enumerate(tokens):
        pending_bytes += encoding.decode_single_token_bytes(token_id)
        pending_tokens.append(SegmentToken(id=token_id, idx=idx))
        try:
            decoded = pending_bytes.decode("utf-8")
        except UnicodeDecodeError:
            continue
        piece = text[cursor:cursor + len(decoded)]
        cursor += len(piece)
        segments.append(Segment(text=piece, tokens=pending_tokens))
        pending_bytes = b""
        pending_tokens = []

    rest = text[cursor:]
    if pending_tokens:
        segments.append(Segment(text=rest, tokens=pending_tokens))
    elif rest and segments:
        last = segments.pop()
        segments.append(Segment(text=last.text + rest, tokens=last.tokens))

    return segments


def pretrained_segments(tokenizer, text: str, remove_first_token: bool = False) -> List[Segment]:
    """
    Align a Hugging Face tokenizer's output with the source text.

    Uses the character offsets the engine reports. Zero-width tokens (such
    as added BOS/EOS markers) are attached to the next segment, or to the
    last one when nothing follows. Characters the tokenizer skipped (for
    example whitespace dropped by the pre-tokenizer) are folded into the
    following segment so no text is lost.

    Args:
        tokenizer: A tokenizers.Tokenizer
        text: Text to align
        remove_first_token: Drop the leading pseudo-token some families prepend

    Returns:
        List of Segment objects
    """
    encoding = tokenizer.encode(text)
    ids = list(encoding.ids)
    offsets = list(encoding.offsets)
    if remove_first_token:
        ids = ids[1:]
        offsets = offsets[1:]

    segments = []
    pending = []
    cursor = 0

    for idx, (token_id, (start, end)) in enumerate(zip(ids, offsets)):
        token = SegmentToken(id=token_id, idx=idx)
        if end <= cursor:
            # Byte-fallback pieces share the span of the character already emitted
            if start < end and segments and not pending:
                segments[-1].tokens.append(token)
            else:
                pending.append(token)
            continue
        pending.append(token)
        segments.append(Segment(text=text[cursor:end], tokens=pending))
        pending = []
        cursor = end

    if cursor < len(text):
        segments.append(Segment(text=text[cursor:], tokens=pending))
    elif pending:
        if segments:
            segments[-1].tokens.extend(pending)
        else:
            segments.append(Segment(text="", tokens=pending))

    return segments
