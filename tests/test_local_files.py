from local_files import MAX_FILE_SIZE, process_local_file, validate_file


def write(tmp_path, name, content):
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


def test_validate_rejects_unsupported_extension(tmp_path):
    result = validate_file(write(tmp_path, "questions.xlsx", "data"))

    assert not result.is_valid
    assert result.file_type == "unknown"
    assert "Unsupported file type: xlsx" in result.errors[0]


def test_validate_rejects_oversized_file(tmp_path):
    path = tmp_path / "huge.csv"
    with path.open("wb") as handle:
        handle.truncate(MAX_FILE_SIZE + 1)

    result = validate_file(path)

    assert not result.is_valid
    assert result.errors[0].startswith("File size exceeds limit")


def test_validate_warns_about_large_file(tmp_path):
    path = tmp_path / "large.txt"
    with path.open("wb") as handle:
        handle.truncate(2 * 1024 * 1024)

    result = validate_file(path)

    assert result.is_valid
    assert result.file_type == "txt"
    assert result.estimated_count == 2 * 1024 * 1024 // 100 // 2
    assert result.warnings[0].startswith("Large file detected")


def test_validate_missing_file(tmp_path):
    result = validate_file(tmp_path / "nope.csv")
    assert not result.is_valid


def test_process_csv_reports_rejected_rows(tmp_path):
    path = write(tmp_path, "local.csv", (
        "Instruction,Solution,Category\n"
        '"Sum two numbers","def add(a, b):\\n    return a + b","Python Basics"\n'
        "Too short,x,Python Basics\n"
    ))

    result = process_local_file(path)

    assert result.success
    assert result.total_processed == 1
    assert result.total_failed == 1
    assert result.errors == ["Line 3: Solution appears too short for code"]
    assert result.message == "Successfully processed 1 question (1 failed)"


def test_process_txt_blocks(tmp_path):
    path = write(tmp_path, "local.txt", (
        "Instruction: Check if a number is even\n"
        "Solution: def is_even(n):\n"
        "    return n % 2 == 0\n"
        "Category: Python Basics\n"
        "\n"
        "Instruction: Compute the mean\n"
        "Solution: import numpy as np\n"
        "np.mean(values)\n"
        "Category: Data Analysis\n"
    ))

    result = process_local_file(path)

    assert result.success
    assert result.total_processed == 2
    assert result.categories_found == ["Data Analysis", "Python Basics"]
    assert result.questions[0].answer == "def is_even(n):\nreturn n % 2 == 0"
    assert result.message == "Successfully processed 2 questions from Data Analysis, Python Basics"


def test_process_invalid_file(tmp_path):
    result = process_local_file(write(tmp_path, "notes.md", "# notes"))

    assert result.success is False
    assert result.message == "File validation failed"


def test_process_file_without_questions(tmp_path):
    result = process_local_file(write(tmp_path, "empty.txt", "just some prose\n"))

    assert result.success is False
    assert result.errors == ["No valid questions found in file"]


def test_process_csv_with_bad_header(tmp_path):
    result = process_local_file(write(tmp_path, "bad.csv", "Foo,Bar\n1,2\n"))

    assert result.success is False
    assert result.message == "File processing failed"
    assert "missing required columns" in result.errors[0]
