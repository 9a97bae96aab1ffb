import logging
import time
from pathlib import Path
from typing import List, Tuple, Union

from models import FileValidationResult, PracticeQuestion, ProcessingResult
from processor import elapsed_ms, generate_result_message
from utils import parse_practice_csv, parse_text_content, validate_question

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("txt", "csv")
MAX_FILE_SIZE = 10 * 1024 * 1024
LARGE_FILE_SIZE = 1024 * 1024


def validate_file(path: Union[str, Path]) -> FileValidationResult:
    """Check a local upload before parsing it"""
    path = Path(path)
    result = FileValidationResult()

    if not path.is_file():
        result.is_valid = False
        result.errors.append(f"File not found: {path}")
        return result

    size = path.stat().st_size
    if size > MAX_FILE_SIZE:
        result.is_valid = False
        result.errors.append(
            f"File size exceeds limit: {size / 1024 / 1024:.2f}MB > {MAX_FILE_SIZE / 1024 / 1024:.0f}MB"
        )

    extension = path.suffix.lower().lstrip(".")
    if extension not in SUPPORTED_FORMATS:
        result.is_valid = False
        result.errors.append(f"Unsupported file type: {extension or 'none'}. Supported: {', '.join(SUPPORTED_FORMATS)}")
    else:
        result.file_type = extension

    if size > LARGE_FILE_SIZE:
        # Roughly 100 bytes per line, two lines per question
        result.estimated_count = max(1, size // 100 // 2)
        result.warnings.append(
            f"Large file detected: {size / 1024 / 1024:.2f}MB. Estimated questions: {result.estimated_count}"
        )

    if not result.is_valid:
        logger.error(f"File validation failed for {path.name}: {result.errors}")

    return result


def _parse_local_content(content: str, file_type: str, file_name: str) -> Tuple[List[PracticeQuestion], List[Tuple[int, List[str]]]]:
    rejections = []

    if file_type == "csv":
        questions = parse_practice_csv(content, file_name, rejections, check_code_length=True)
        return questions, rejections

    questions = []
    for line_number, candidate in parse_text_content(content):
        reasons = validate_question(candidate, check_code_length=True)
        if reasons:
            logger.warning(f"Question validation failed at line {line_number}: {reasons}")
            rejections.append((line_number, reasons))
            continue
        questions.append(candidate)

    return questions, rejections


def process_local_file(path: Union[str, Path]) -> ProcessingResult:
    """Parse a local .csv or .txt practice file.

    Unlike remote ingestion, every rejected question is reported in
    ``errors`` and counted in ``total_failed``.
    """
    path = Path(path)
    start_time = time.monotonic()
    result = ProcessingResult()

    validation = validate_file(path)
    if not validation.is_valid:
        result.errors = validation.errors
        result.message = "File validation failed"
        result.processing_time = elapsed_ms(start_time)
        return result

    try:
        content = path.read_text(encoding="utf-8")
        if not content.strip():
            result.errors.append("Failed to read file content")
            result.message = "File read error"
            return result

        questions, rejections = _parse_local_content(content, validation.file_type, path.name)

        if not questions and not rejections:
            result.errors.append("No valid questions found in file")
            result.message = "No questions processed"
            return result

        result.warnings.extend(validation.warnings)
        result.errors.extend(f"Line {line_number}: {', '.join(reasons)}" for line_number, reasons in rejections)
        result.questions = questions
        result.total_processed = len(questions)
        result.total_failed = len(rejections)
        result.categories_found = sorted({q.category for q in questions})
        result.success = bool(questions)
        result.message = generate_result_message(result, verb="processed", report_failures=True)

        logger.info(f"Local file {path.name}: {result.message}")

    except Exception as e:
        logger.error(f"Processing error for {path.name}: {e}")
        result.errors.append(f"Processing error: {e}")
        result.message = "File processing failed"

    finally:
        result.processing_time = elapsed_ms(start_time)

    return result
