import asyncio
import logging
from typing import List, Optional

import aiohttp
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from config import Config
from errors import DiscoveryError, DownloadError
from models import FileDescriptor

logger = logging.getLogger(__name__)


class DriveClient:
    """Read-only Google Drive v3 client: list files and download their content."""

    FILES_URL = "https://www.googleapis.com/drive/v3/files"
    TOKEN_URI = "https://oauth2.googleapis.com/token"
    SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]
    CHUNK_SIZE = 64 * 1024

    def __init__(self, config: Config):
        self.config = config
        self.credentials = None
        self.session: Optional[aiohttp.ClientSession] = None

    async def connect(self):
        self.config.validate_drive()

        try:
            self.credentials = service_account.Credentials.from_service_account_info(
                {
                    "client_email": self.config.service_account_email,
                    "private_key": self.config.private_key,
                    "token_uri": self.TOKEN_URI,
                },
                scopes=self.SCOPES,
            )
            await self._refresh_token()

            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
            )
            logger.info(f"Connected to Google Drive as {self.config.service_account_email}")

        except Exception as e:
            logger.error(f"Google Drive connection error: {e}")
            raise

    async def close(self):
        if self.session is not None:
            await self.session.close()
            self.session = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _refresh_token(self):
        # google-auth refreshes synchronously through requests
        await asyncio.to_thread(self.credentials.refresh, Request())

    async def _headers(self) -> dict:
        if not self.credentials.valid:
            await self._refresh_token()
        return {"Authorization": f"Bearer {self.credentials.token}"}

    def _require_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            raise RuntimeError("DriveClient is not connected; call connect() first")
        return self.session

    async def list_files(
        self,
        query: str,
        fields: str = "files(id, name)",
        page_size: Optional[int] = None,
        order_by: Optional[str] = None,
    ) -> List[FileDescriptor]:
        session = self._require_session()
        params = {"q": query, "fields": fields}
        if page_size:
            params["pageSize"] = str(page_size)
        if order_by:
            params["orderBy"] = order_by

        try:
            async with session.get(self.FILES_URL, params=params, headers=await self._headers()) as response:
                if response.status != 200:
                    body = await response.text()
                    raise DiscoveryError(f"Drive file listing failed with HTTP {response.status}: {body[:200]}")
                data = await response.json()

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Drive file listing error for query {query!r}: {e}")
            raise DiscoveryError(f"Drive file listing failed: {e}") from e

        return [FileDescriptor.from_api(item) for item in data.get("files", [])]

    async def download(self, file_id: str) -> str:
        session = self._require_session()
        url = f"{self.FILES_URL}/{file_id}"
        chunks = []

        try:
            async with session.get(url, params={"alt": "media"}, headers=await self._headers()) as response:
                if response.status != 200:
                    raise DownloadError(f"Drive download of {file_id} failed with HTTP {response.status}")

                async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                    chunks.append(chunk)

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Drive download error for {file_id}: {e}")
            raise DownloadError(f"Drive download of {file_id} failed: {e}") from e

        try:
            return b"".join(chunks).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DownloadError(f"Drive file {file_id} is not valid UTF-8: {e}") from e
