import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from errors import SchemaError
from models import PRACTICAL, THEORETICAL, ColumnMapping, PracticeQuestion

logger = logging.getLogger(__name__)

QUOTE_CHARS = ('"', "'")

MAX_QUESTION_LENGTH = 1000
MAX_ANSWER_LENGTH = 5000
MAX_CATEGORY_LENGTH = 100
MIN_CODE_LENGTH = 10
DEFAULT_CATEGORY = "General"

INSTRUCTION_KEYS = ("instruction", "question")
SOLUTION_KEYS = ("solution", "answer")
CATEGORY_KEYS = ("category", "topic")
TYPE_KEYS = ("type",)
PRACTICAL_KEYS = ("practical", "coding", "code")

# (row number, rejection reasons)
Rejection = Tuple[int, List[str]]


def parse_csv_line(line: str, delimiter: str = ",") -> List[str]:
    """Split one CSV line into fields, honouring single or double quotes.

    Only the quote character that opened a span can close it, and a doubled
    quote inside a span is kept as one literal quote. An unterminated span
    runs to the end of the line.
    """
    fields = []
    current = []
    quote_char = None
    i = 0

    while i < len(line):
        char = line[i]

        if quote_char is None and char in QUOTE_CHARS:
            quote_char = char
        elif quote_char is not None and char == quote_char:
            if i + 1 < len(line) and line[i + 1] == quote_char:
                current.append(quote_char)
                i += 1
            else:
                quote_char = None
        elif quote_char is None and char == delimiter:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)

        i += 1

    fields.append("".join(current))
    return [field.strip() for field in fields]


def clean_text(text: Optional[str]) -> str:
    """Trim a raw field, expand \\n and \\t escapes and drop wrapping quotes.

    Quote pairs are peeled until none wrap the whole value, so cleaning an
    already cleaned value leaves it unchanged.
    """
    if not text:
        return ""

    cleaned = text.strip().replace("\\n", "\n").replace("\\t", "\t").strip()

    while len(cleaned) >= 2 and cleaned[0] in QUOTE_CHARS and cleaned[-1] == cleaned[0]:
        cleaned = cleaned[1:-1].strip()

    return cleaned


def _find_column(headers: Sequence[str], keys: Sequence[str]) -> int:
    for idx, header in enumerate(headers):
        if any(key in header for key in keys):
            return idx
    return -1


def map_columns(headers: Sequence[str]) -> ColumnMapping:
    """Infer column roles from header text.

    The result may be invalid (see ``ColumnMapping.is_valid``); callers decide
    what to do with a file that has no instruction or solution column.
    """
    headers = [header.strip().lower() for header in headers]

    return ColumnMapping(
        instruction_index=_find_column(headers, INSTRUCTION_KEYS),
        solution_index=_find_column(headers, SOLUTION_KEYS),
        category_index=_find_column(headers, CATEGORY_KEYS),
        type_index=_find_column(headers, TYPE_KEYS),
    )


def normalize_question_type(value: Optional[str]) -> str:
    if not value:
        return THEORETICAL

    normalized = value.strip().lower()
    if any(key in normalized for key in PRACTICAL_KEYS):
        return PRACTICAL
    return THEORETICAL


def validate_question(question: PracticeQuestion, check_code_length: bool = False) -> List[str]:
    """Return the reasons a candidate question is invalid (empty when valid)."""
    errors = []

    if not question.question.strip():
        errors.append("Instruction is empty")
    elif len(question.question) > MAX_QUESTION_LENGTH:
        errors.append("Instruction too long")

    if not question.answer.strip():
        errors.append("Solution is empty")
    elif len(question.answer) > MAX_ANSWER_LENGTH:
        errors.append("Solution too long")

    if not question.category.strip():
        errors.append("Category is empty")
    elif len(question.category) > MAX_CATEGORY_LENGTH:
        errors.append("Category name too long")

    if question.question and question.question == question.answer:
        errors.append("Instruction and solution are identical")

    if check_code_length and question.answer and "\n" not in question.answer and len(question.answer) < MIN_CODE_LENGTH:
        errors.append("Solution appears too short for code")

    return errors


def _field(columns: Sequence[str], index: int) -> str:
    if 0 <= index < len(columns):
        return columns[index].strip()
    return ""


def build_question(
    columns: Sequence[str],
    mapping: ColumnMapping,
    check_code_length: bool = False,
) -> Tuple[Optional[PracticeQuestion], List[str]]:
    """Turn one tokenized data row into a question.

    Returns ``(question, [])`` on success, ``(None, reasons)`` when the row is
    rejected and ``(None, [])`` when the row is blank and skipped silently.
    """
    if len(columns) < mapping.required_width:
        return None, ["insufficient columns"]

    instruction = _field(columns, mapping.instruction_index)
    solution = _field(columns, mapping.solution_index)
    category = _field(columns, mapping.category_index) or DEFAULT_CATEGORY
    question_type = _field(columns, mapping.type_index)

    if not instruction and not solution:
        return None, []

    candidate = PracticeQuestion(
        question=clean_text(instruction),
        answer=clean_text(solution),
        category=category,
        type=normalize_question_type(question_type),
    )

    reasons = validate_question(candidate, check_code_length=check_code_length)
    if reasons:
        return None, reasons

    return candidate, []


def split_lines(content: str) -> List[str]:
    return [line.strip() for line in content.lstrip("\ufeff").split("\n")]


def read_header(lines: List[str], file_name: str = "") -> ColumnMapping:
    headers = [header.lower() for header in parse_csv_line(lines[0])]
    logger.debug(f"CSV headers for {file_name}: {headers}")

    mapping = map_columns(headers)
    logger.debug(f"Detected column indices for {file_name}: {mapping}")

    if not mapping.is_valid:
        raise SchemaError(
            f"{file_name or 'CSV file'} is missing required columns: "
            f"Instruction and Solution (found headers: {', '.join(headers)})"
        )
    return mapping


def parse_practice_csv(
    content: str,
    file_name: str = "",
    rejections: Optional[List[Rejection]] = None,
    check_code_length: bool = False,
) -> List[PracticeQuestion]:
    """Parse practice-question CSV content.

    Raises ``SchemaError`` when the header has no instruction or solution
    column. Rejected rows are left out of the result; when ``rejections`` is
    given, ``(row_number, reasons)`` is appended to it for each of them.
    """
    questions = []
    lines = split_lines(content)

    if len([line for line in lines if line]) <= 1:
        logger.warning(f"CSV file {file_name} is empty or has only headers")
        return questions

    mapping = read_header(lines, file_name)

    for row_number, line in enumerate(lines[1:], 2):
        if not line:
            continue

        question, reasons = build_question(parse_csv_line(line), mapping, check_code_length)

        if question is None:
            if reasons:
                logger.warning(f"Skipping row {row_number} of {file_name}: {', '.join(reasons)}")
                if rejections is not None:
                    rejections.append((row_number, reasons))
            continue

        questions.append(question)

        if len(questions) <= 3:
            logger.debug(f"Added question from {file_name}: {question.question[:50]!r} [{question.category}]")

    logger.info(f"Parsed {len(questions)} questions from {file_name or 'CSV content'}")
    return questions


def parse_quiz_csv(content: str, file_name: str = "") -> List[PracticeQuestion]:
    """Parse a graded quiz CSV. Rows only need a question and an answer."""
    questions = []
    lines = split_lines(content)

    if len([line for line in lines if line]) <= 1:
        return questions

    mapping = read_header(lines, file_name)

    for row_number, line in enumerate(lines[1:], 2):
        if not line:
            continue

        columns = parse_csv_line(line)
        question = clean_text(_field(columns, mapping.instruction_index))
        answer = clean_text(_field(columns, mapping.solution_index))

        if not question or not answer:
            logger.debug(f"Skipping quiz row {row_number}: missing question or answer")
            continue

        questions.append(PracticeQuestion(
            question=question,
            answer=answer,
            category=_field(columns, mapping.category_index) or DEFAULT_CATEGORY,
            type=normalize_question_type(_field(columns, mapping.type_index)),
        ))

    return questions


BLOCK_PREFIXES = {
    "instruction": re.compile(r"^(instruction|question):\s*", re.IGNORECASE),
    "solution": re.compile(r"^(solution|answer):\s*", re.IGNORECASE),
    "category": re.compile(r"^(category|topic):\s*", re.IGNORECASE),
}


def _finalize_block(block: Dict) -> Optional[Tuple[int, PracticeQuestion]]:
    if not block.get("instruction") or not block.get("solution"):
        return None

    return block["line_number"], PracticeQuestion(
        question=clean_text(block["instruction"]),
        answer=clean_text(block["solution"]),
        category=clean_text(block.get("category") or DEFAULT_CATEGORY),
        type=THEORETICAL,
    )


def parse_text_content(content: str) -> List[Tuple[int, PracticeQuestion]]:
    """Parse the block text format into (line number, candidate) pairs.

    Format:
    Instruction: Question text
    Solution: first line of code
        continuation lines
    Category: Optional category

    Candidates are not validated here.
    """
    candidates = []
    block: Dict = {}

    for line_number, raw_line in enumerate(content.split("\n"), 1):
        line = raw_line.strip()
        if not line:
            continue

        if BLOCK_PREFIXES["instruction"].match(line):
            finalized = _finalize_block(block)
            if finalized:
                candidates.append(finalized)
            block = {
                "instruction": BLOCK_PREFIXES["instruction"].sub("", line).strip(),
                "line_number": line_number,
            }
        elif BLOCK_PREFIXES["solution"].match(line):
            if block.get("instruction"):
                block["solution"] = BLOCK_PREFIXES["solution"].sub("", line).strip()
        elif BLOCK_PREFIXES["category"].match(line):
            if block.get("instruction"):
                block["category"] = BLOCK_PREFIXES["category"].sub("", line).strip()
        elif block.get("instruction") and "solution" not in block:
            block["instruction"] += " " + line
        elif "solution" in block:
            block["solution"] = f"{block['solution']}\n{line}" if block["solution"] else line

    finalized = _finalize_block(block)
    if finalized:
        candidates.append(finalized)

    logger.info(f"Text parsing completed. Found {len(candidates)} candidate questions")
    return candidates
