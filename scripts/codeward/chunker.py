"""
Content Chunker - Split large content into line-preserving analysis units.

Size is measured in characters as a cheap proxy for model tokens.  Chunks only
break at newline boundaries, so concatenating the chunks of a blob reproduces
it exactly.
"""

import logging
import re
from typing import List, Optional

from codeward.models import Chunk

logger = logging.getLogger(__name__)

# one line with its trailing newline, or a final unterminated line
_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+")


def chunk_label(index: int, total: int, base_label: Optional[str] = None) -> Optional[str]:
    """Label for chunk *index* of *total*.

    ``"app.rb (chunk 2/3)"`` with a base label, ``"chunk 2/3"`` without one,
    and the bare base label when the content was not split.
    """
    if total <= 1:
        return base_label
    if base_label:
        return f"{base_label} (chunk {index}/{total})"
    return f"chunk {index}/{total}"


class ContentChunker:
    """Greedy line-based splitter bounded by ``max_chunk_size`` characters."""

    def __init__(self, max_chunk_size: int):
        if isinstance(max_chunk_size, bool) or not isinstance(max_chunk_size, int) or max_chunk_size < 1:
            raise ValueError(f"max_chunk_size must be a positive integer, got {max_chunk_size!r}")
        self.max_chunk_size = max_chunk_size

    def split(self, content: str) -> List[str]:
        """Split *content* into chunks of at most ``max_chunk_size`` characters.

        A single line longer than the limit is kept whole as its own chunk.
        """
        chunks: List[str] = []
        current = ""

        for match in _LINE_RE.finditer(content):
            line = match.group(0)
            if len(current) + len(line) > self.max_chunk_size:
                if current:
                    chunks.append(current)
                current = line
            else:
                current += line

        if current:
            chunks.append(current)

        oversized = sum(1 for chunk in chunks if len(chunk) > self.max_chunk_size)
        if oversized:
            logger.debug("%d chunk(s) exceed %d chars because of long lines", oversized, self.max_chunk_size)
        return chunks

    def make_chunks(self, content: str, base_label: Optional[str] = None) -> List[Chunk]:
        pieces = self.split(content)
        total = len(pieces)
        return [
            Chunk(content=piece, index=i, total=total, label=chunk_label(i, total, base_label))
            for i, piece in enumerate(pieces, start=1)
        ]


__all__ = ["ContentChunker", "chunk_label"]
