import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from config import VALID_QUIZ_NUMBERS, Config
from discovery import FileDiscovery, quote_query_value
from drive_client import DriveClient
from errors import DiscoveryError, DownloadError, EmptyResultError
from models import FileDescriptor, PracticeQuestion, ProcessingResult
from utils import parse_practice_csv, parse_quiz_csv

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


class RowPolicy(Enum):
    LENIENT = "lenient"  # rejected rows are only logged
    STRICT = "strict"  # rejected rows are also reported in warnings


class ProgressReporter:
    """Forward progress percentages, never letting them go backwards."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.current = 0

    def __call__(self, value: int):
        value = max(self.current, min(100, int(value)))
        self.current = value
        if self.callback:
            self.callback(value)


def generate_result_message(
    result: ProcessingResult,
    verb: str = "parsed",
    noun: str = "question",
    report_failures: bool = False,
) -> str:
    if not result.success:
        return f"Processing failed: {result.errors[0] if result.errors else 'Unknown error'}"

    count = result.total_processed
    message = f"Successfully {verb} {count} {noun}{'s' if count != 1 else ''}"

    if report_failures and result.total_failed > 0:
        return f"{message} ({result.total_failed} failed)"

    if result.categories_found:
        if len(result.categories_found) <= 3:
            categories_text = ", ".join(result.categories_found)
        else:
            categories_text = f"{len(result.categories_found)} categories"
        message = f"{message} from {categories_text}"

    return message


def elapsed_ms(start_time: float) -> int:
    return int((time.monotonic() - start_time) * 1000)


async def open_drive(config: Config, drive=None) -> Tuple[object, bool]:
    """Return ``(drive, owned)``; a client is created and connected when none is given."""
    if drive is not None:
        return drive, False

    client = DriveClient(config)
    await client.connect()
    return client, True


class PracticeFileProcessor:
    """Download every practice CSV from Drive and turn it into questions.

    One instance per run; configuration is passed in explicitly. A listing and
    download client may be injected, otherwise a ``DriveClient`` is created
    from the configured service account and closed when the run ends.
    """

    def __init__(
        self,
        config: Config,
        drive=None,
        row_policy: Optional[RowPolicy] = None,
        **discovery_options,
    ):
        self.config = config
        self.drive = drive
        if row_policy is None:
            row_policy = RowPolicy.STRICT if config.strict_rows else RowPolicy.LENIENT
        self.row_policy = row_policy
        self.discovery_options = discovery_options

    async def download_all_practice_questions(
        self,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ProcessingResult:
        start_time = time.monotonic()
        progress = ProgressReporter(on_progress)
        result = ProcessingResult()
        drive, owned = None, False

        try:
            logger.info("Starting practice questions download from Google Drive")

            self.config.validate_drive()
            drive, owned = await open_drive(self.config, self.drive)
            progress(10)

            files = await self._discover_files(drive, result, cancel_event)
            questions = await self._process_files(drive, files, result, progress, cancel_event)
            progress(80)

            if not questions:
                raise EmptyResultError("No valid questions found in any practice files")

            result.questions = questions
            result.total_processed = len(questions)
            result.categories_found = list(dict.fromkeys(q.category for q in questions if q.category))
            result.success = True
            result.message = generate_result_message(result)

            logger.info(
                f"Practice questions parsing completed: {len(questions)} questions, "
                f"categories {result.categories_found}"
            )

        except Exception as e:
            logger.error(f"Error downloading practice questions: {e}")
            result.errors.append(f"Download failed: {e}")
            result.message = f"Processing failed: {e}"

        finally:
            if owned:
                await drive.close()

        result.processing_time = elapsed_ms(start_time)
        progress(100)
        return result

    async def _discover_files(
        self,
        drive,
        result: ProcessingResult,
        cancel_event: Optional[asyncio.Event],
    ) -> List[FileDescriptor]:
        if cancel_event is not None and cancel_event.is_set():
            warning = "Processing cancelled before file discovery"
            logger.warning(warning)
            result.warnings.append(warning)
            return []

        discovery = FileDiscovery(drive, folder_id=self.config.folder_id, **self.discovery_options)
        location = discovery.describe_location()

        try:
            files = await discovery.search_practice_files()
        except DiscoveryError as e:
            raise DiscoveryError(f"Practice file search {location} failed: {e}") from e

        if not files:
            raise DiscoveryError(
                f"No practice files found {location}. "
                f"Expected files: {discovery.expected_name(1)}, etc."
            )

        logger.info(f"Found {len(files)} practice files: {[f.name for f in files]}")
        return files

    async def _process_files(
        self,
        drive,
        files: List[FileDescriptor],
        result: ProcessingResult,
        progress: ProgressReporter,
        cancel_event: Optional[asyncio.Event],
    ) -> List[PracticeQuestion]:
        questions = []

        for idx, file in enumerate(files):
            if cancel_event is not None and cancel_event.is_set():
                warning = f"Processing cancelled after {idx} of {len(files)} files"
                logger.warning(warning)
                result.warnings.append(warning)
                break

            logger.info(f"Processing file {idx + 1}/{len(files)}: {file.name}")
            progress(10 + (idx * 70) // len(files))

            try:
                file_questions = await self._download_and_process_file(drive, file, result)
            except Exception as e:
                error_msg = f"Failed to process {file.name}: {e}"
                logger.error(error_msg)
                result.errors.append(error_msg)
                result.total_failed += 1
                continue

            questions.extend(file_questions)
            logger.info(f"Processed {file.name}: {len(file_questions)} questions")

        return questions

    async def _download_and_process_file(
        self,
        drive,
        file: FileDescriptor,
        result: ProcessingResult,
    ) -> List[PracticeQuestion]:
        logger.info(f"Downloading file: {file.name} (ID: {file.id})")

        content = await drive.download(file.id)
        if not content:
            raise DownloadError("Failed to download file content")

        logger.info(f"Downloaded {file.name} content ({len(content)} characters)")

        rejections = []
        questions = parse_practice_csv(content, file.name, rejections)

        if self.row_policy is RowPolicy.STRICT:
            for row_number, reasons in rejections:
                result.warnings.append(f"{file.name} row {row_number}: {', '.join(reasons)}")

        return questions


class QuizFileLoader:
    """Load the question set for one graded quiz (``quiz_questions_<n>.csv``)."""

    MIME_TYPE = "text/csv"

    def __init__(self, config: Config, drive=None):
        self.config = config
        self.drive = drive

    @staticmethod
    def quiz_file_name(quiz_number: int) -> str:
        return f"quiz_questions_{quiz_number}.csv"

    def available_quizzes(self) -> List[Dict]:
        return [
            {
                "quiz_number": number,
                "csv_file_name": self.quiz_file_name(number),
                "sheet_tab_name": f"Quiz {number}",
            }
            for number in VALID_QUIZ_NUMBERS
        ]

    async def download_quiz_questions(self, quiz_number: Optional[int] = None) -> ProcessingResult:
        start_time = time.monotonic()
        result = ProcessingResult()
        drive, owned = None, False

        try:
            if quiz_number is None:
                quiz_number = self.config.get_quiz_number()
            file_name = self.quiz_file_name(quiz_number)

            self.config.validate_drive()
            drive, owned = await open_drive(self.config, self.drive)

            query = (
                f"name={quote_query_value(file_name)} and "
                f"mimeType={quote_query_value(self.MIME_TYPE)} and trashed=false"
            )
            files = await drive.list_files(query, "files(id, name)")
            if not files:
                raise DiscoveryError(
                    f"CSV file '{file_name}' not found in Google Drive for Quiz {quiz_number}. "
                    "Please upload the file."
                )

            content = await drive.download(files[0].id)
            if not content:
                raise DownloadError("Failed to download CSV file content")

            questions = parse_quiz_csv(content, file_name)
            if not questions:
                raise EmptyResultError(f"No valid questions found in {file_name}. Please check the file format.")

            result.questions = questions
            result.total_processed = len(questions)
            result.categories_found = list(dict.fromkeys(q.category for q in questions))
            result.success = True
            result.message = f"Successfully loaded {len(questions)} quiz questions for Quiz {quiz_number}"
            logger.info(result.message)

        except Exception as e:
            logger.error(f"Error loading quiz questions: {e}")
            result.errors.append(f"Download failed: {e}")
            result.message = f"Processing failed: {e}"

        finally:
            if owned:
                await drive.close()

        result.processing_time = elapsed_ms(start_time)
        return result
