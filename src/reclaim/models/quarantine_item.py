"""Quarantine record dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class QuarantineItem:
    """A file held in quarantine, restorable until purged."""

    id: str
    original_path: Path
    stored_path: Path
    size: int
    checksum: str
    quarantined_at: datetime
    category: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    intact: bool = True

    def to_record(self) -> dict[str, Any]:
        """Serialise for the on-disk metadata record."""
        return {
            "id": self.id,
            "original_path": str(self.original_path),
            "stored_name": self.stored_path.name,
            "size": self.size,
            "checksum": self.checksum,
            "quarantined_at": self.quarantined_at.isoformat(),
            "category": self.category,
            "metadata": self.metadata,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any], stored_path: Path) -> QuarantineItem:
        return cls(
            id=record["id"],
            original_path=Path(record["original_path"]),
            stored_path=stored_path,
            size=int(record["size"]),
            checksum=record["checksum"],
            quarantined_at=datetime.fromisoformat(record["quarantined_at"]),
            category=record.get("category", ""),
            metadata=record.get("metadata", {}),
        )

    def to_dict(self) -> dict[str, Any]:
        data = self.to_record()
        data["stored_path"] = str(self.stored_path)
        data["intact"] = self.intact
        return data
