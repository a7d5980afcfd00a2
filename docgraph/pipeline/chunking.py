"""
Overlapping Text Chunker
========================

Splits raw document text into overlapping, sentence-aware chunks.

Algorithm:
1. Texts longer than ``max_segment_length`` are pre-split into coarse
   segments along blank lines (or single newlines when the text has fewer
   than 5 paragraphs). Oversized paragraphs are split at sentence ends and,
   as a last resort, at fixed character offsets.
2. Each segment is cut into windows of ``target_size`` characters. With
   sentence preservation enabled the right edge moves forward to the next
   sentence end when that stays within ``boundary_slack`` characters.
3. The next window starts ``overlap_size`` characters before the previous
   end, pulled back to the preceding sentence start when that start lies
   strictly inside the previous window.
4. Whitespace-only windows are dropped.

Any substring shorter than the overlap that spans a window boundary
therefore appears intact in at least one chunk.

Usage:
    chunker = TextChunker(ChunkingOptions(target_size=1000, overlap_size=200))
    segments = chunker.chunk(text)
    chunks = build_chunks("report.txt", text, segments)
"""

import hashlib
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from docgraph.config.settings import env_bool, env_int

logger = logging.getLogger(__name__)


@dataclass
class ChunkingOptions:
    """
    Chunking parameters.

    Attributes:
        target_size: Window length in characters
        overlap_size: Characters shared by consecutive windows
        max_segment_length: Texts longer than this are pre-split first
        preserve_sentence_boundaries: Snap window edges to sentence boundaries
        multilingual: Also treat 。！？ as sentence endings
        boundary_slack: Max characters a window may grow to reach a sentence end
    """
    target_size: int = 1000
    overlap_size: int = 200
    max_segment_length: int = 1_000_000
    preserve_sentence_boundaries: bool = True
    multilingual: bool = False
    boundary_slack: int = 100

    def __post_init__(self):
        if self.target_size < 1:
            raise ValueError(f"target_size must be >= 1, got {self.target_size}")
        if not 0 <= self.overlap_size < self.target_size:
            raise ValueError(
                f"overlap_size must be in [0, target_size), got {self.overlap_size}"
            )
        if self.max_segment_length < self.target_size:
            raise ValueError(
                f"max_segment_length must be >= target_size, got {self.max_segment_length}"
            )
        if self.boundary_slack < 0:
            raise ValueError(f"boundary_slack must be >= 0, got {self.boundary_slack}")

    @classmethod
    def from_env(cls) -> "ChunkingOptions":
        """Build options from CHUNK_SIZE, CHUNK_OVERLAP, MAX_TEXT_LENGTH, ..."""
        return cls(
            target_size=env_int("CHUNK_SIZE", 1000),
            overlap_size=env_int("CHUNK_OVERLAP", 200),
            max_segment_length=env_int("MAX_TEXT_LENGTH", 1_000_000),
            preserve_sentence_boundaries=env_bool("PRESERVE_SENTENCES", True),
            multilingual=env_bool("MULTILINGUAL_SUPPORT", False),
        )


@dataclass
class TextStats:
    """Shape of a text as seen by the chunker."""
    text_length: int
    needs_presplit: bool
    estimated_chunks: int
    paragraphs: int
    lines: int
    presplit_segments: Optional[int] = None
    max_segment_length: Optional[int] = None


@dataclass
class Chunk:
    """
    A positioned chunk of one document.

    Attributes:
        id: Node identity (content hash scoped to the document)
        content_hash: MD5 of the exact chunk text
        document_key: Key of the owning Document
        text: Chunk text
        position: 1-based position in the document
        length: Character length of the text
        content_offset: Character offset of the text in the source document
        token_count: Whitespace-delimited word count
        embedding: Embedding vector, None when embedding failed
    """
    id: str
    content_hash: str
    document_key: str
    text: str
    position: int
    length: int
    content_offset: int
    token_count: int
    embedding: Optional[List[float]] = None

    def to_properties(self) -> dict:
        """Node properties as written to the graph."""
        return {
            "id": self.id,
            "content_hash": self.content_hash,
            "document_key": self.document_key,
            "text": self.text,
            "position": self.position,
            "length": self.length,
            "content_offset": self.content_offset,
            "tokens": self.token_count,
            "embedding": self.embedding,
        }


@dataclass
class ChunkSequence:
    """
    Ordered chunks of one document, addressed by position.

    The FIRST/NEXT edges in the graph are a projection of this sequence.
    """
    document_key: str
    chunks: List[Chunk] = field(default_factory=list)

    def __post_init__(self):
        for expected, chunk in enumerate(self.chunks, start=1):
            if chunk.position != expected:
                raise ValueError(
                    f"positions must be contiguous 1..N, got {chunk.position} at index {expected - 1}"
                )
            if chunk.document_key != self.document_key:
                raise ValueError(
                    f"chunk {chunk.id} belongs to {chunk.document_key!r}, not {self.document_key!r}"
                )

    def __len__(self) -> int:
        return len(self.chunks)

    def __iter__(self) -> Iterator[Chunk]:
        return iter(self.chunks)

    @property
    def first(self) -> Optional[Chunk]:
        return self.chunks[0] if self.chunks else None

    def at(self, position: int) -> Optional[Chunk]:
        """Chunk at a 1-based position, None when out of range."""
        if 1 <= position <= len(self.chunks):
            return self.chunks[position - 1]
        return None

    def neighbors(self, position: int, window: int) -> List[Chunk]:
        """Chunks within ``window`` positions of ``position``, excluding it, in order."""
        lo = max(1, position - window)
        hi = min(len(self.chunks), position + window)
        return [c for c in self.chunks[lo - 1:hi] if c.position != position]

    def pairs(self) -> Iterator[Tuple[Chunk, Chunk]]:
        """Consecutive (previous, next) pairs."""
        return zip(self.chunks, self.chunks[1:])


class TextChunker:
    """
    Sliding-window chunker with sentence-boundary snapping.

    Output is deterministic for a given text and options.
    """

    PARAGRAPH_SEPARATOR = re.compile(r"\n\s*\n")
    SENTENCE_ENDINGS = ".!?"
    WIDE_SENTENCE_ENDINGS = "。！？"

    # Pre-split floor for segment size, below max_segment_length
    MIN_PRESPLIT_SIZE = 10_000

    def __init__(self, options: Optional[ChunkingOptions] = None):
        self.options = options or ChunkingOptions()

        endings = self.SENTENCE_ENDINGS
        if self.options.multilingual:
            endings += self.WIDE_SENTENCE_ENDINGS
        self._endings = frozenset(endings)
        self._sentence_end_run = re.compile(f"[{re.escape(endings)}]+")

    def chunk(self, text: str) -> List[str]:
        """
        Split text into ordered, non-empty chunks.

        Args:
            text: Raw document text

        Returns:
            Chunk texts in document order
        """
        if not text or not text.strip():
            return []

        if len(text) < self.options.target_size / 10:
            return [text.strip()]

        chunks: List[str] = []
        for segment in self._presplit(text):
            chunks.extend(self._chunk_segment(segment))

        logger.debug(f"Chunked {len(text)} chars into {len(chunks)} chunks")
        return chunks

    def stats(self, text: str) -> TextStats:
        """Describe how a text will be chunked."""
        stats = TextStats(
            text_length=len(text),
            needs_presplit=len(text) > self.options.max_segment_length,
            estimated_chunks=max(1, len(text) // self.options.target_size),
            paragraphs=len(self.PARAGRAPH_SEPARATOR.split(text)),
            lines=len(text.split("\n")),
        )

        if stats.needs_presplit:
            segments = self._presplit(text)
            stats.presplit_segments = len(segments)
            stats.max_segment_length = max((len(s) for s in segments), default=0)

        return stats

    def overlapping_pairs(self, text: str) -> List[str]:
        """
        Chunks interleaved with bridge segments.

        Each bridge joins the tail of chunk i with the head of chunk i+1,
        ``overlap_size`` characters each (bounded by the chunk lengths).
        """
        chunks = self.chunk(text)
        result: List[str] = []

        for i, current in enumerate(chunks):
            result.append(current)
            if i < len(chunks) - 1:
                following = chunks[i + 1]
                size = min(self.options.overlap_size, len(current), len(following))
                if size > 0:
                    result.append(current[-size:] + following[:size])

        return result

    # ------------------------------------------------------------------
    # Coarse pre-split
    # ------------------------------------------------------------------

    def _presplit(self, text: str) -> List[str]:
        """Split texts over max_segment_length into bounded segments."""
        max_length = self.options.max_segment_length
        if len(text) <= max_length:
            return [text]

        segment_size = min(max_length, max(self.MIN_PRESPLIT_SIZE, max_length // 2))

        paragraphs = self.PARAGRAPH_SEPARATOR.split(text)
        if len(paragraphs) < 5:
            paragraphs = text.split("\n")

        segments: List[str] = []
        current = ""

        for paragraph in paragraphs:
            paragraph = paragraph.strip()
            if not paragraph:
                continue

            if len(paragraph) > segment_size:
                if current:
                    segments.append(current)
                    current = ""
                segments.extend(self._split_long_paragraph(paragraph, segment_size))
            elif len(current) + len(paragraph) + 2 > segment_size:
                if current:
                    segments.append(current)
                current = paragraph
            else:
                current = f"{current}\n\n{paragraph}" if current else paragraph

        if current:
            segments.append(current)

        logger.info(
            f"Pre-split {len(text)} chars into {len(segments)} segments "
            f"(segment size {segment_size})"
        )
        return segments

    def _split_long_paragraph(self, text: str, max_size: int) -> List[str]:
        """Split at sentence ends, then at fixed offsets."""
        if len(text) <= max_size:
            return [text]

        sentences = self._split_sentences(text)
        segments: List[str] = []
        current = ""

        for sentence in sentences:
            if len(sentence) > max_size:
                if current:
                    segments.append(current)
                    current = ""
                segments.extend(self._split_fixed(sentence, max_size))
            elif len(current) + len(sentence) > max_size:
                if current:
                    segments.append(current)
                current = sentence
            else:
                current += sentence

        if current:
            segments.append(current)

        return segments

    def _split_sentences(self, text: str) -> List[str]:
        """Sentences with their trailing punctuation; whitespace-only pieces dropped."""
        if not self.options.preserve_sentence_boundaries:
            return [text]

        sentences = []
        start = 0
        for match in self._sentence_end_run.finditer(text):
            sentences.append(text[start:match.end()])
            start = match.end()
        if start < len(text):
            sentences.append(text[start:])

        return [s for s in sentences if s.strip()]

    @staticmethod
    def _split_fixed(text: str, size: int) -> List[str]:
        return [text[i:i + size] for i in range(0, len(text), size)]

    # ------------------------------------------------------------------
    # Sliding window
    # ------------------------------------------------------------------

    def _chunk_segment(self, text: str) -> List[str]:
        """Cut one segment into overlapping windows."""
        if not text.strip():
            return []

        target = self.options.target_size
        overlap = self.options.overlap_size
        preserve = self.options.preserve_sentence_boundaries
        length = len(text)

        if length <= target:
            return [text.strip()]

        chunks: List[str] = []
        start = 0
        stalled = 0

        while start < length:
            end = min(start + target, length)

            if end < length and preserve:
                limit = start + target + self.options.boundary_slack
                sentence_end = self._next_sentence_end(text, end, limit + 1)
                if sentence_end <= limit:
                    end = sentence_end

            piece = text[start:end].strip()
            if piece:
                chunks.append(piece)

            if end >= length:
                break

            next_start = max(start, end - overlap)
            if preserve:
                sentence_start = self._previous_sentence_start(text, next_start, start)
                if start < sentence_start < end:
                    next_start = sentence_start

            if next_start >= end:
                next_start = end

            # Two iterations without progress: jump to the window end
            if next_start <= start:
                stalled += 1
                if stalled >= 2:
                    next_start = end
                    stalled = 0
            else:
                stalled = 0

            start = next_start

        return chunks

    def _next_sentence_end(self, text: str, pos: int, limit: int) -> int:
        """
        Index just past the first sentence ending in [pos, limit).

        Returns min(limit, len(text)) when there is none.
        """
        stop = min(limit, len(text))
        for i in range(pos, stop):
            if text[i] in self._endings:
                return i + 1
        return stop

    def _previous_sentence_start(self, text: str, pos: int, floor: int) -> int:
        """
        Start of the sentence containing pos, searching back to floor.

        Returns floor when no sentence ending lies in [floor, pos).
        """
        for i in range(pos - 1, floor - 1, -1):
            if text[i] in self._endings:
                j = i + 1
                while j < len(text) and text[j].isspace():
                    j += 1
                return j
        return floor


def content_hash(text: str) -> str:
    """MD5 hex digest of the exact text."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def chunk_identity(document_key: str, text: str, occurrence: int = 0) -> str:
    """
    Node identity for a chunk.

    Content-addressed within its document: the same text in the same document
    always maps to the same id, and a repeated text gets one id per occurrence
    so the order chain never loops back on itself.
    """
    raw = f"{document_key}\x1f{occurrence}\x1f{text}"
    return hashlib.md5(raw.encode("utf-8")).hexdigest()


def _locate(source: str, segment: str, cursor: int, first: bool) -> int:
    """Offset of segment in source from cursor on, cursor if not found verbatim."""
    idx = source.find(segment, cursor if first else cursor + 1)
    if idx < 0:
        idx = source.find(segment, cursor)
    if idx < 0:
        # Pre-split segments are re-joined, so search for the first line only
        first_line = segment.split("\n", 1)[0][:64]
        idx = source.find(first_line, cursor) if first_line else -1
    return idx if idx >= 0 else cursor


def build_chunks(document_key: str, source_text: str, segments: List[str]) -> List[Chunk]:
    """
    Turn chunk texts into positioned Chunk records.

    Args:
        document_key: Owning document key
        source_text: Original document text (for offsets)
        segments: Output of TextChunker.chunk()

    Returns:
        Chunks with positions 1..N and non-decreasing offsets
    """
    chunks: List[Chunk] = []
    occurrences: Counter = Counter()
    cursor = 0

    for segment in segments:
        if not segment.strip():
            continue

        digest = content_hash(segment)
        occurrence = occurrences[digest]
        occurrences[digest] += 1

        cursor = _locate(source_text, segment, cursor, first=not chunks)

        chunks.append(Chunk(
            id=chunk_identity(document_key, segment, occurrence),
            content_hash=digest,
            document_key=document_key,
            text=segment,
            position=len(chunks) + 1,
            length=len(segment),
            content_offset=cursor,
            token_count=len(segment.split()),
        ))

    return chunks


__all__ = [
    "ChunkingOptions",
    "TextStats",
    "Chunk",
    "ChunkSequence",
    "TextChunker",
    "build_chunks",
    "content_hash",
    "chunk_identity",
]
