import os
from typing import Optional

from dotenv import load_dotenv

from errors import ConfigError

VALID_QUIZ_NUMBERS = (1, 2, 3, 4)


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Environment variable names
    CLIENT_EMAIL_VAR = "GOOGLE_CLIENT_EMAIL"
    PRIVATE_KEY_VAR = "GOOGLE_PRIVATE_KEY"
    FOLDER_ID_VAR = "PRACTICE_FOLDER_ID"
    QUIZ_NUMBER_VAR = "QUIZ_NUMBER"

    def __init__(
        self,
        service_account_email: Optional[str] = None,
        private_key: Optional[str] = None,
        folder_id: Optional[str] = None,
        quiz_number: Optional[str] = None,
        strict_rows: bool = False,
        request_timeout: float = 30,
        log_level: str = "INFO",
    ):
        self.service_account_email = service_account_email
        # Keys pasted into .env files carry escaped newlines
        self.private_key = private_key.replace("\\n", "\n") if private_key else private_key
        self.folder_id = folder_id or None
        self.quiz_number = quiz_number
        self.strict_rows = strict_rows
        self.request_timeout = request_timeout
        self.log_level = log_level

    @classmethod
    def from_env(cls) -> "Config":
        load_dotenv()

        return cls(
            service_account_email=os.getenv(cls.CLIENT_EMAIL_VAR),
            private_key=os.getenv(cls.PRIVATE_KEY_VAR),
            folder_id=os.getenv(cls.FOLDER_ID_VAR),
            quiz_number=os.getenv(cls.QUIZ_NUMBER_VAR),
            strict_rows=_env_flag("PRACTICE_STRICT_ROWS"),
            request_timeout=float(os.getenv("DRIVE_REQUEST_TIMEOUT", "30")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def is_drive_configured(self) -> bool:
        return bool(self.service_account_email and self.private_key)

    # Validate required Drive credentials
    def validate_drive(self):
        missing = []
        if not self.service_account_email:
            missing.append(self.CLIENT_EMAIL_VAR)
        if not self.private_key:
            missing.append(self.PRIVATE_KEY_VAR)

        if missing:
            raise ConfigError(
                "Google Drive service account configuration missing. "
                f"Missing required environment variables: {', '.join(missing)}"
            )

    def get_quiz_number(self) -> int:
        if not self.quiz_number:
            raise ConfigError(
                f"Required environment variable {self.QUIZ_NUMBER_VAR} is not set. "
                "Cannot determine quiz to load."
            )

        try:
            quiz_number = int(self.quiz_number)
        except ValueError:
            quiz_number = None

        if quiz_number not in VALID_QUIZ_NUMBERS:
            raise ConfigError(f"Invalid {self.QUIZ_NUMBER_VAR} '{self.quiz_number}'. Must be 1, 2, 3, or 4.")

        return quiz_number
