"""Local store of the most recent extraction results.

Items are kept newest first in a JSON file and capped at a fixed count.
The extraction core never touches this store; the CLI records into it.
"""

import json
import time
from dataclasses import asdict, dataclass
from pathlib import Path

from docextract.ocr.extractor import ExtractionResult
from docextract.utils.logger import get_logger

logger = get_logger(__name__)

UNTITLED = "Untitled Document"


@dataclass
class HistoryItem:
    """A stored extraction result with an identifier and a title."""

    id: str
    title: str
    content: str
    sourceFile: str
    extractedAt: str
    ocrEngine: str
    language: str | None = None
    confidence: int | None = None

    @classmethod
    def from_result(cls, result: ExtractionResult) -> "HistoryItem":
        return cls(
            id=str(time.time_ns() // 1_000_000),
            title=result.source_file or UNTITLED,
            **result.to_dict(),
        )


class HistoryStore:
    """Bounded, newest-first extraction history backed by a JSON file.

    Args:
        path: Location of the JSON file (``~`` is expanded).
        max_items: Number of items to keep.
    """

    def __init__(self, path: Path | str, max_items: int = 10) -> None:
        self.path = Path(path).expanduser()
        self.max_items = max_items

    def load(self) -> list[HistoryItem]:
        """Read stored items; an unreadable file yields an empty history."""
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return [HistoryItem(**item) for item in raw][: self.max_items]
        except (OSError, ValueError, TypeError) as exc:
            logger.error("Failed to parse history at %s: %s", self.path, exc)
            return []

    def add(self, result: ExtractionResult) -> HistoryItem:
        """Record a result at the front of the history and save it."""
        item = HistoryItem.from_result(result)
        items = [item, *self.load()][: self.max_items]
        self._save(items)
        return item

    def clear(self) -> None:
        """Remove all stored items."""
        self._save([])

    def _save(self, items: list[HistoryItem]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps([asdict(item) for item in items], ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
        except OSError as exc:
            logger.error("Failed to save history to %s: %s", self.path, exc)
