from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

PRACTICAL = "Practical"
THEORETICAL = "Theoretical"


@dataclass(frozen=True)
class PracticeQuestion:
    """One validated practice question."""

    question: str
    answer: str
    category: str
    type: str = THEORETICAL

    def to_dict(self) -> Dict[str, str]:
        return {
            "Question": self.question,
            "Answer": self.answer,
            "Category": self.category,
            "Type": self.type,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "PracticeQuestion":
        return cls(
            question=str(payload["Question"]),
            answer=str(payload["Answer"]),
            category=str(payload.get("Category") or "General"),
            type=str(payload.get("Type") or THEORETICAL),
        )


@dataclass(frozen=True)
class FileDescriptor:
    """A file entry returned by the remote listing service."""

    id: str
    name: str
    size: Optional[int] = None
    created_time: Optional[str] = None
    parents: Optional[List[str]] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "FileDescriptor":
        size = payload.get("size")
        parents = payload.get("parents")
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name", "")),
            size=int(size) if size is not None else None,
            created_time=payload.get("createdTime"),
            parents=list(parents) if parents else None,
        )


@dataclass(frozen=True)
class ColumnMapping:
    instruction_index: int
    solution_index: int
    category_index: int = -1
    type_index: int = -1

    @property
    def is_valid(self) -> bool:
        return self.instruction_index >= 0 and self.solution_index >= 0

    @property
    def required_width(self) -> int:
        """Minimum number of fields a data row needs."""
        return max(self.instruction_index, self.solution_index) + 1


@dataclass
class ProcessingResult:
    """Aggregate outcome of one ingestion run."""

    success: bool = False
    message: str = ""
    total_processed: int = 0
    total_failed: int = 0
    categories_found: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    processing_time: int = 0
    questions: List[PracticeQuestion] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "totalProcessed": self.total_processed,
            "totalFailed": self.total_failed,
            "categoriesFound": list(self.categories_found),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "processingTime": self.processing_time,
            "questions": [q.to_dict() for q in self.questions],
        }


@dataclass
class FileValidationResult:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    file_type: str = "unknown"
    estimated_count: int = 0
