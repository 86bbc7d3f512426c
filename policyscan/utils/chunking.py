"""
Chunking for long inputs and merging of flagged spans across chunks.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from policyscan.config import settings
from policyscan.schemas.analysis_schemas import RiskSpan


@dataclass(frozen=True)
class TextChunk:
    """One window of the source document."""
    text: str
    start: int

    @property
    def end(self) -> int:
        return self.start + len(self.text)


def chunk_text(text: str, chunk_size: Optional[int] = None, overlap: Optional[int] = None) -> List[TextChunk]:
    """
    Split text into overlapping windows that cover it without gaps.

    Args:
        text: Full document
        chunk_size: Window length in characters
        overlap: Characters shared by consecutive windows

    Returns:
        One chunk when the text fits in a single window, otherwise windows
        advancing by chunk_size - overlap until the end is covered.
    """
    size = chunk_size or settings.chunk_size
    overlap = settings.chunk_overlap if overlap is None else overlap
    if overlap >= size:
        raise ValueError(f"overlap ({overlap}) must be smaller than chunk_size ({size})")

    if len(text) <= size:
        return [TextChunk(text=text, start=0)]

    chunks = []
    step = size - overlap
    pos = 0
    while True:
        chunks.append(TextChunk(text=text[pos:pos + size], start=pos))
        if pos + size >= len(text):
            break
        pos += step
    return chunks


def needs_chunking(text: str, chunk_size: Optional[int] = None) -> bool:
    return len(text) > (chunk_size or settings.chunk_size)


def offset_span(span: RiskSpan, chunk: TextChunk) -> RiskSpan:
    """Shift a chunk-relative span to document coordinates."""
    if span.start_index is None or span.end_index is None:
        return span
    return span.model_copy(update={
        "start_index": span.start_index + chunk.start,
        "end_index": span.end_index + chunk.start,
    })


def merge_overlapping_spans(spans: Iterable[RiskSpan], document: str) -> List[RiskSpan]:
    """
    Merge overlapping or adjacent spans with the same level and category.

    Two spans merge when `start <= previous_end + 1`. The merged text is
    re-sliced from the document rather than concatenated, so overlap text
    is not duplicated. Spans without offsets are kept as they are.
    """
    positioned = []
    unpositioned = []
    for span in spans:
        if span.start_index is None or span.end_index is None:
            unpositioned.append(span)
        else:
            positioned.append(span)

    positioned.sort(key=lambda s: (s.start_index, s.end_index))

    merged: List[RiskSpan] = []
    for span in positioned:
        if merged:
            prev = merged[-1]
            if (
                span.start_index <= prev.end_index + 1
                and span.risk_level == prev.risk_level
                and span.policy_category == prev.policy_category
            ):
                end = max(prev.end_index, span.end_index)
                merged[-1] = prev.model_copy(update={
                    "end_index": end,
                    "text": document[prev.start_index:end],
                })
                continue
        merged.append(span)

    return merged + unpositioned
