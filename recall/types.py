"""
Data types for recall.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional


def now_millis() -> int:
    """Current time as epoch milliseconds (note timestamps)."""
    return int(time.time() * 1000)


class EmbeddingMethod(str, Enum):
    """
    User-facing selector for the embedding backend.

    Values are provider registry names.
    """
    SENTENCE_TRANSFORMERS = "sentence-transformers"
    FASTEMBED = "fastembed"
    OPENAI = "openai"

    @classmethod
    def parse(cls, value: "str | EmbeddingMethod") -> "EmbeddingMethod":
        """
        Parse a method from a registry name or a legacy setting value.

        Accepts names case-insensitively, with '_' or '-' separators, plus the
        legacy preference values MEDIAPIPE_USE, MEDIAPIPE_BERT, ONNX and OPENAI.

        Raises:
            ValueError: If the value names no known method
        """
        if isinstance(value, cls):
            return value
        key = value.strip().lower().replace("_", "-")
        if key in _METHOD_ALIASES:
            return _METHOD_ALIASES[key]
        for member in cls:
            if member.value == key:
                return member
        valid = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown embedding method: '{value}'. Valid methods: {valid}")


_METHOD_ALIASES = {
    "mediapipe-use": EmbeddingMethod.SENTENCE_TRANSFORMERS,
    "st": EmbeddingMethod.SENTENCE_TRANSFORMERS,
    "mediapipe-bert": EmbeddingMethod.FASTEMBED,
    "onnx": EmbeddingMethod.FASTEMBED,
}


@dataclass
class Note:
    """
    A persisted text note.

    Attributes:
        text: Note text; editing it invalidates the embedding
        id: Store-assigned identity (None until inserted)
        timestamp: Creation time, epoch milliseconds
        embedding: Vector from the active provider, or None if not yet
            computed (or computation failed)
        pinned: Pinned notes are always returned by search
    """
    text: str
    id: Optional[int] = None
    timestamp: int = field(default_factory=now_millis)
    embedding: Optional[list[float]] = None
    pinned: bool = False

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None

    def with_text(self, text: str) -> "Note":
        """Copy with new text and the embedding cleared."""
        return replace(self, text=text, embedding=None)

    def preview(self, width: int = 30) -> str:
        """Text truncated to width characters, with an ellipsis if cut."""
        if len(self.text) > width:
            return self.text[:width] + "..."
        return self.text

    def to_dict(self) -> dict:
        """JSON-friendly form; the vector itself is reduced to its length."""
        return {
            "id": self.id,
            "text": self.text,
            "timestamp": self.timestamp,
            "pinned": self.pinned,
            "dimension": len(self.embedding) if self.embedding is not None else None,
        }

    def __str__(self) -> str:
        pin = " [pinned]" if self.pinned else ""
        return f"{self.id}: {self.preview(60)}{pin}"


@dataclass
class SearchResult:
    """A note paired with its similarity score. Never persisted."""
    note: Note
    score: float

    @property
    def text(self) -> str:
        return self.note.text

    @property
    def pinned(self) -> bool:
        return self.note.pinned

    def to_dict(self) -> dict:
        return {
            "id": self.note.id,
            "text": self.note.text,
            "pinned": self.note.pinned,
            "score": round(self.score, 4),
        }
