import asyncio
import json
import logging

from config import Config
from processor import PracticeFileProcessor


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


async def run() -> dict:
    """Run one practice-question ingestion and return the result payload"""
    config = Config.from_env()
    configure_logging(config.log_level)
    logger = logging.getLogger(__name__)

    if not config.is_drive_configured():
        logger.error("Google Drive not configured. Please check server configuration.")

    processor = PracticeFileProcessor(config)
    result = await processor.download_all_practice_questions(
        on_progress=lambda value: logger.info(f"Progress: {value}%")
    )

    if result.success:
        logger.info(f"{result.message} ({result.processing_time} ms)")
    else:
        logger.error(f"Failed to load practice questions: {', '.join(result.errors)}")

    return result.to_dict()


if __name__ == "__main__":
    payload = asyncio.run(run())
    print(json.dumps(payload, indent=2, ensure_ascii=False))
