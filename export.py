import csv
import logging
from typing import Iterable, Optional

import pandas as pd

from models import PracticeQuestion

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ["Instruction", "Solution", "Category"]

CSV_TEMPLATE = (
    'Instruction,Solution,Category\n'
    '"Create a function that returns the sum of two numbers","def add(a, b):\\n    return a + b","Python Basics"\n'
    '"Write a function to check if a number is even","def is_even(n):\\n    return n % 2 == 0","Python Basics"\n'
    '"Calculate the mean of a list of numbers",'
    '"import numpy as np\\ndef calculate_mean(numbers):\\n    return np.mean(numbers)","Data Analysis"'
)

TXT_TEMPLATE = """Instruction: Create a function that returns the sum of two numbers
Solution: def add(a, b):
    return a + b
Category: Python Basics

Instruction: Write a function to check if a number is even
Solution: def is_even(n):
    return n % 2 == 0
Category: Python Basics

Instruction: Calculate the mean of a list of numbers
Solution: import numpy as np
def calculate_mean(numbers):
    return np.mean(numbers)
Category: Data Analysis"""


def generate_template_file(fmt: str = "csv") -> str:
    """Return an example practice file in the given format ("csv" or "txt")."""
    if fmt == "csv":
        return CSV_TEMPLATE
    if fmt == "txt":
        return TXT_TEMPLATE
    raise ValueError(f"Unsupported template format: {fmt}")


def _escape_line_breaks(text: str) -> str:
    # One question per line; clean_text turns these back into real breaks
    return text.replace("\r\n", "\n").replace("\n", "\\n").replace("\t", "\\t")


def export_questions_csv(questions: Iterable[PracticeQuestion], category: Optional[str] = None) -> str:
    """Export questions as a CSV that the practice parser can read back."""
    rows = [
        {
            "Instruction": _escape_line_breaks(q.question),
            "Solution": _escape_line_breaks(q.answer),
            "Category": q.category,
        }
        for q in questions
        if category is None or q.category == category
    ]

    if not rows:
        logger.warning(f"No questions to export (category: {category})")
        raise ValueError("No questions to export")

    df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    logger.info(f"Exporting {len(df)} questions to CSV")
    return df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
