import re
import time
import uuid
import logging
import numbers
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from utils.result import Result
from module_store import ModuleStore, ModuleStoreError
from schemas import (
    NO_CONTENT,
    NO_EXAMPLE,
    NO_IMAGE,
    CourseSummary,
    Module,
    Section,
    SectionRow,
    Submodule,
    SubmissionSummary,
    SubmitCourseRequest,
)

logger = logging.getLogger(__name__)


class SpreadsheetColumns:
    """Header names expected in the first sheet (case- and spacing-sensitive)."""
    SUBMODULE_TITLE = "Submodule Title"
    SECTION_TITLE = "Section Title"
    SECTION_CONTENT = "Section Content"
    VIDEO_LINK = "Video Link"
    SECTION_TIME = "Section Time (minutes)"
    EXAMPLE = "Example"
    IMAGE_LINK = "Image Link"


_WHITESPACE_RUN = re.compile(r"\s+")
_LEADING_INTEGER = re.compile(r"^\s*([+-]?\d+)")


class LogContext:
    """
    Times one pipeline step and logs its start, outcome and duration.

    Fields passed to the constructor are attached to every record as
    `extra`. Fields recorded with `add()` inside the block describe the
    outcome and are appended to the completion message as well.
    """
    def __init__(self, step: str, **fields):
        self.step = step
        self.fields = fields
        self.request_id = fields.get('request_id') or str(uuid.uuid4())[:8]
        self.outcome: Dict[str, Any] = {}
        self.started_at = None

    def add(self, **outcome):
        self.outcome.update(outcome)

    def _extra(self, **more) -> Dict[str, Any]:
        return {**self.fields, **self.outcome, "request_id": self.request_id, **more}

    def __enter__(self):
        self.started_at = time.perf_counter()
        logger.info(f"[{self.request_id}] {self.step} started", extra=self._extra())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.perf_counter() - self.started_at
        if exc_type:
            logger.error(
                f"[{self.request_id}] {self.step} failed after {elapsed:.2f}s: {exc_val}",
                extra=self._extra(duration=elapsed),
                exc_info=(exc_type, exc_val, exc_tb)
            )
            return False

        summary = ", ".join(f"{key}={value}" for key, value in self.outcome.items())
        logger.info(
            f"[{self.request_id}] {self.step} finished in {elapsed:.2f}s" + (f" ({summary})" if summary else ""),
            extra=self._extra(duration=elapsed)
        )
        return False


def derive_module_id(title: str) -> str:
    """
    Derive the storage key of a module from its title.

    The title is lowercased and every run of whitespace becomes one hyphen,
    so "Intro To Go" and "intro   to   go" both map to "intro-to-go".
    """
    return _WHITESPACE_RUN.sub("-", title.lower())


def parse_duration(value: Any) -> int:
    """
    Parse a section duration in minutes.

    Follows integer-prefix parsing: "15 min" is 15, "7.9" is 7 and floats are
    truncated. Missing or unparseable values are 0. Negative durations are
    clamped to 0.
    """
    if value is None or isinstance(value, bool):
        return 0

    if isinstance(value, numbers.Integral):
        minutes = int(value)
    elif isinstance(value, numbers.Real):
        if pd.isna(value) or value in (float("inf"), float("-inf")):
            return 0
        minutes = int(value)
    else:
        match = _LEADING_INTEGER.match(str(value))
        if not match:
            return 0
        minutes = int(match.group(1))

    if minutes < 0:
        logger.warning(f"Negative section time {value!r} clamped to 0")
        return 0
    return minutes


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _cell_text(value: Any) -> Optional[str]:
    """Render a cell as text, or None when it is blank. Whole floats lose their ".0"."""
    if _is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class ModuleProcessor:
    """
    Turns an uploaded course spreadsheet into a stored Module document.

    The pipeline is decode -> filter -> aggregate -> upsert. Every public
    entry point returns a Result; only programming errors escape as
    exceptions, and submit_course converts those into a 500 Result too.
    """

    @staticmethod
    def submit_course(request: SubmitCourseRequest, store: ModuleStore) -> Result[SubmissionSummary]:
        """
        Validate, decode, aggregate and store one course upload.

        Args:
            request: Uploaded file content plus course metadata
            store: Storage collaborator the module is upserted into

        Returns:
            Result[SubmissionSummary]: Summary of the stored module, or a classified error
        """
        request_id = str(uuid.uuid4())[:8]
        log_context = {
            "request_id": request_id,
            "upload_filename": request.filename,
            "course_title": request.title
        }

        logger.info("Processing course upload", extra=log_context)

        try:
            validation_result = ModuleProcessor._validate_request(request)
            if validation_result.is_failure():
                logger.warning(f"Course upload rejected: {validation_result.error}", extra=log_context)
                return validation_result

            with LogContext("spreadsheet decoding", **log_context) as step:
                decode_result = ModuleProcessor.decode_rows(request.file_content)
                if decode_result.is_success():
                    step.add(row_count=len(decode_result.data))

            if decode_result.is_failure():
                logger.warning(f"Spreadsheet decoding failed: {decode_result.error}", extra=log_context)
                return decode_result

            rows = decode_result.data
            log_context["row_count"] = len(rows)

            with LogContext("module aggregation", **log_context) as step:
                module = ModuleProcessor.build_module(
                    rows, request.title, request.description, request.banner_image
                )
                step.add(
                    module_id=module.module_id,
                    total_submodules=module.total_submodules,
                    total_time=module.total_time
                )

            log_context["module_id"] = module.module_id

            try:
                with LogContext("module upsert", **log_context) as step:
                    stored = store.upsert_by_key(module.module_id, module)
                    step.add(record_id=stored.id)
            except ModuleStoreError as e:
                logger.error(f"Could not store module: {e}", extra=log_context)
                return Result.persistence_error("Failed to save the course module.")

            logger.info(
                f"Stored module with {stored.total_submodules} submodules and {stored.total_time} minutes",
                extra=log_context
            )
            return Result.ok(SubmissionSummary(
                title=stored.title,
                total_submodules=stored.total_submodules,
                total_time=stored.total_time
            ))

        except Exception as e:
            logger.exception("Unexpected error during course upload", extra={**log_context, "error": str(e)})
            return Result.server_error("Failed to process the file.")

    @staticmethod
    def list_courses(store: ModuleStore) -> Result[List[CourseSummary]]:
        """Summaries of every stored module, in the store's enumeration order."""
        try:
            modules = store.find_all()
        except ModuleStoreError as e:
            logger.error(f"Could not list modules: {e}")
            return Result.persistence_error("Failed to fetch course details.")

        courses = [
            CourseSummary(
                title=module.title,
                id=module.id,
                module_id=module.module_id,
                description=module.description,
                chapters=module.total_submodules,
                time=module.total_time,
                image=module.banner_image
            )
            for module in modules
        ]
        logger.info(f"Listed {len(courses)} courses")
        return Result.ok(courses)

    @staticmethod
    def _validate_request(request: SubmitCourseRequest) -> Result[bool]:
        """Presence checks on the upload and the course metadata."""
        if not request.file_content:
            return Result.validation_error("No file uploaded.")

        if not request.title or not request.description:
            return Result.validation_error("Course title and description are required.")

        if not request.banner_image:
            return Result.validation_error("Banner image is required.")

        return Result.ok(True)

    @staticmethod
    def decode_rows(payload: bytes) -> Result[List[Dict[str, Any]]]:
        """
        Read the first sheet of a spreadsheet payload into row records.

        The header row supplies the keys; rows keep their order in the sheet
        and empty cells become None. Cell text is taken literally, so "NA",
        "NULL" or "None" stay text. Headers are not checked here.

        Args:
            payload: Raw spreadsheet bytes

        Returns:
            Result containing the list of row dicts, or a DecodeError
        """
        try:
            start_time = time.time()
            df = pd.read_excel(BytesIO(payload), sheet_name=0, keep_default_na=False, na_values=[])
            read_time = time.time() - start_time
        except Exception as e:
            logger.error(
                "Failed to read Excel payload",
                extra={"payload_size": len(payload or b""), "error": str(e), "error_type": type(e).__name__}
            )
            return Result.decode_error(f"Failed to read Excel file: {str(e)}")

        logger.info(
            "Successfully read Excel payload",
            extra={
                "row_count": len(df),
                "column_count": len(df.columns),
                "read_time_seconds": f"{read_time:.2f}"
            }
        )

        cells = df.astype(object)
        empty = cells.isna() | cells.eq("")
        rows = cells.where(~empty, None).to_dict(orient="records")
        return Result.ok(rows)

    @staticmethod
    def filter_rows(rows: List[Dict[str, Any]]) -> Tuple[List[SectionRow], int]:
        """
        Keep the rows that name both a submodule and a section.

        Rows missing either title are dropped and logged; they are not an
        error. Kept rows are normalized into SectionRow objects.

        Args:
            rows: Decoded row records

        Returns:
            Tuple of (kept rows in input order, number of skipped rows)
        """
        section_rows = []
        skipped = 0

        for index, row in enumerate(rows):
            submodule_title = _cell_text(row.get(SpreadsheetColumns.SUBMODULE_TITLE))
            section_title = _cell_text(row.get(SpreadsheetColumns.SECTION_TITLE))

            if submodule_title is None or section_title is None:
                skipped += 1
                logger.warning(f"Missing data in row {index}: {row}")
                continue

            section_rows.append(SectionRow(
                submodule_title=submodule_title,
                section_title=section_title,
                content=_cell_text(row.get(SpreadsheetColumns.SECTION_CONTENT)),
                video_link=_cell_text(row.get(SpreadsheetColumns.VIDEO_LINK)),
                example=_cell_text(row.get(SpreadsheetColumns.EXAMPLE)),
                image=_cell_text(row.get(SpreadsheetColumns.IMAGE_LINK)),
                duration=parse_duration(row.get(SpreadsheetColumns.SECTION_TIME))
            ))

        if skipped:
            logger.info(f"Skipped {skipped} of {len(rows)} rows with missing titles")
        return section_rows, skipped

    @staticmethod
    def aggregate(
        section_rows: List[SectionRow],
        title: str,
        description: str,
        banner_image: str
    ) -> Module:
        """
        Group section rows into submodules and accumulate the totals.

        Submodules and sections keep first-encounter order. The title index
        only points into module.submodules; it holds no state of its own.
        """
        module = Module(
            module_id=derive_module_id(title),
            title=title,
            description=description,
            banner_image=banner_image
        )
        index_by_title: Dict[str, int] = {}

        for row in section_rows:
            position = index_by_title.get(row.submodule_title)
            if position is None:
                position = len(module.submodules)
                index_by_title[row.submodule_title] = position
                module.submodules.append(Submodule(title=row.submodule_title))
                module.total_submodules += 1

            submodule = module.submodules[position]
            submodule.sections.append(Section(
                title=row.section_title,
                content=row.content or NO_CONTENT,
                video_link=row.video_link or "",
                example=row.example or NO_EXAMPLE,
                image=row.image or NO_IMAGE,
                time=row.duration
            ))
            submodule.total_sections += 1
            submodule.total_time += row.duration
            module.total_time += row.duration

        return module

    @staticmethod
    def build_module(
        rows: List[Dict[str, Any]],
        title: str,
        description: str,
        banner_image: str
    ) -> Module:
        """Filter raw row records and aggregate the remainder into a Module."""
        section_rows, skipped = ModuleProcessor.filter_rows(rows)
        module = ModuleProcessor.aggregate(section_rows, title, description, banner_image)
        logger.info(
            "Aggregated module",
            extra={
                "module_id": module.module_id,
                "kept_rows": len(section_rows),
                "skipped_rows": skipped,
                "total_submodules": module.total_submodules,
                "total_time": module.total_time
            }
        )
        return module
