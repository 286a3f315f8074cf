"""Read-only document model handed from the source to the upload pipeline."""

from __future__ import annotations

import dataclasses
import enum
from collections.abc import Iterable, Sequence

from sheets_uploader.exceptions import UploaderError

Row = tuple[str, ...]


def _freeze_rows(rows: Iterable[Sequence[object]]) -> tuple[Row, ...]:
    return tuple(tuple("" if cell is None else str(cell) for cell in row) for row in rows)


@dataclasses.dataclass(frozen=True)
class SheetProperties:
    sheet_id: int
    title: str
    index: int


@dataclasses.dataclass(frozen=True)
class Sheet:
    properties: SheetProperties
    rows: tuple[Row, ...] = ()

    @classmethod
    def from_values(
        cls, title: str, index: int, rows: Iterable[Sequence[object]], *, sheet_id: int = 0
    ) -> Sheet:
        return cls(SheetProperties(sheet_id=sheet_id, title=title, index=index), _freeze_rows(rows))

    @property
    def title(self) -> str:
        return self.properties.title

    @property
    def index(self) -> int:
        return self.properties.index


@dataclasses.dataclass(frozen=True)
class DocumentProperties:
    title: str
    locale: str = ""
    time_zone: str = ""


@dataclasses.dataclass(frozen=True)
class Document:
    id: str
    properties: DocumentProperties
    sheets: tuple[Sheet, ...] = ()

    @property
    def title(self) -> str:
        return self.properties.title


@dataclasses.dataclass(frozen=True)
class UploadTask:
    sheet: Sheet
    directory: str


class Outcome(str, enum.Enum):
    SKIPPED = "skipped"
    WRITTEN = "written"
    FAILED = "failed"


@dataclasses.dataclass(frozen=True)
class UploadResult:
    path: str
    outcome: Outcome
    error: UploaderError | None = None

    @classmethod
    def skipped(cls, path: str) -> UploadResult:
        return cls(path, Outcome.SKIPPED)

    @classmethod
    def written(cls, path: str) -> UploadResult:
        return cls(path, Outcome.WRITTEN)

    @classmethod
    def failed(cls, path: str, error: UploaderError) -> UploadResult:
        return cls(path, Outcome.FAILED, error)

    @property
    def changed_path(self) -> str:
        """Path to invalidate downstream, empty unless content was written."""
        return self.path if self.outcome is Outcome.WRITTEN else ""


class RunState(str, enum.Enum):
    DISPATCHING = "dispatching"
    DRAINING = "draining"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclasses.dataclass(frozen=True)
class PipelineReport:
    state: RunState
    results: int
    skipped: int
    written: int
    changed_paths: tuple[str, ...]


@dataclasses.dataclass(frozen=True)
class RunReport:
    document_title: str
    directory: str
    pipeline: PipelineReport
    invalidation_id: str | None = None
