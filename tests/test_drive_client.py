import asyncio

import aiohttp
import pytest
from aiohttp import test_utils, web

from config import Config
from drive_client import DriveClient
from errors import ConfigError, DiscoveryError, DownloadError
from models import FileDescriptor


def test_connect_requires_credentials():
    client = DriveClient(Config())

    with pytest.raises(ConfigError):
        asyncio.run(client.connect())

    assert client.session is None


def test_calls_require_connection(config):
    client = DriveClient(config)

    with pytest.raises(RuntimeError, match="not connected"):
        asyncio.run(client.list_files("trashed=false"))


def test_file_descriptor_from_api_payload():
    descriptor = FileDescriptor.from_api({
        "id": "abc",
        "name": "class1_hands_on.csv",
        "size": "2048",
        "createdTime": "2024-01-01T00:00:00Z",
        "parents": ["folder123"],
    })

    assert descriptor == FileDescriptor(
        id="abc",
        name="class1_hands_on.csv",
        size=2048,
        created_time="2024-01-01T00:00:00Z",
        parents=["folder123"],
    )
    assert FileDescriptor.from_api({"id": "x", "name": "y"}).size is None


class StubCredentials:
    """Credentials whose token is always valid unless ``valid`` is cleared."""

    def __init__(self, valid=True):
        self.valid = valid
        self.token = "test-token"
        self.refreshed = 0

    def refresh(self, request):
        self.refreshed += 1
        self.valid = True
        self.token = "fresh-token"


async def call_drive(config, routes, call, credentials=None, timeout=None):
    app = web.Application()
    app.add_routes(routes)

    async with test_utils.TestServer(app) as server:
        client = DriveClient(config)
        client.FILES_URL = str(server.make_url("/drive/v3/files"))
        client.credentials = credentials or StubCredentials()
        client.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout))
        try:
            return await call(client)
        finally:
            await client.close()


class TestListFiles:
    def test_sends_query_and_parses_files(self, config):
        seen = {}

        async def files(request):
            seen.update(request.query)
            seen["auth"] = request.headers.get("Authorization")
            return web.json_response({"files": [
                {"id": "a", "name": "class1_hands_on.csv", "size": "12", "createdTime": "2024-01-01T00:00:00Z"},
                {"id": "b", "name": "class2_hands_on.csv"},
            ]})

        result = asyncio.run(call_drive(
            config,
            [web.get("/drive/v3/files", files)],
            lambda client: client.list_files("trashed=false", "files(id, name, size)", page_size=100, order_by="name"),
        ))

        assert [f.id for f in result] == ["a", "b"]
        assert result[0].size == 12
        assert seen["q"] == "trashed=false"
        assert seen["fields"] == "files(id, name, size)"
        assert seen["pageSize"] == "100"
        assert seen["orderBy"] == "name"
        assert seen["auth"] == "Bearer test-token"

    def test_missing_files_key_is_empty(self, config):
        async def files(request):
            return web.json_response({})

        result = asyncio.run(call_drive(
            config,
            [web.get("/drive/v3/files", files)],
            lambda client: client.list_files("trashed=false"),
        ))

        assert result == []

    def test_http_error_raises_discovery_error(self, config):
        async def files(request):
            return web.Response(status=403, text="insufficient permissions")

        with pytest.raises(DiscoveryError, match="HTTP 403: insufficient permissions"):
            asyncio.run(call_drive(
                config,
                [web.get("/drive/v3/files", files)],
                lambda client: client.list_files("trashed=false"),
            ))

    def test_timeout_raises_discovery_error(self, config):
        async def files(request):
            await asyncio.sleep(0.5)
            return web.json_response({"files": []})

        with pytest.raises(DiscoveryError, match="listing failed"):
            asyncio.run(call_drive(
                config,
                [web.get("/drive/v3/files", files)],
                lambda client: client.list_files("trashed=false"),
                timeout=0.05,
            ))

    def test_expired_token_is_refreshed(self, config):
        seen = {}

        async def files(request):
            seen["auth"] = request.headers.get("Authorization")
            return web.json_response({"files": []})

        credentials = StubCredentials(valid=False)
        asyncio.run(call_drive(
            config,
            [web.get("/drive/v3/files", files)],
            lambda client: client.list_files("trashed=false"),
            credentials=credentials,
        ))

        assert credentials.refreshed == 1
        assert seen["auth"] == "Bearer fresh-token"


class TestDownload:
    def test_chunked_body_is_joined_and_decoded(self, config):
        content = "Instruction,Solution\n" + "Écrire une fonction,déf f(): pass\n" * 5000
        seen = {}

        async def media(request):
            seen["file_id"] = request.match_info["file_id"]
            seen["alt"] = request.query.get("alt")
            return web.Response(body=content.encode("utf-8"))

        result = asyncio.run(call_drive(
            config,
            [web.get("/drive/v3/files/{file_id}", media)],
            lambda client: client.download("abc"),
        ))

        assert len(content.encode("utf-8")) > DriveClient.CHUNK_SIZE
        assert result == content
        assert seen == {"file_id": "abc", "alt": "media"}

    def test_http_error_raises_download_error(self, config):
        async def media(request):
            return web.Response(status=404, text="not found")

        with pytest.raises(DownloadError, match="HTTP 404"):
            asyncio.run(call_drive(
                config,
                [web.get("/drive/v3/files/{file_id}", media)],
                lambda client: client.download("missing"),
            ))

    def test_invalid_utf8_raises_download_error(self, config):
        async def media(request):
            return web.Response(body=b"Instruction,Solution\n\xff\xfe,bad\n")

        with pytest.raises(DownloadError, match="not valid UTF-8"):
            asyncio.run(call_drive(
                config,
                [web.get("/drive/v3/files/{file_id}", media)],
                lambda client: client.download("abc"),
            ))

    def test_timeout_raises_download_error(self, config):
        async def media(request):
            await asyncio.sleep(0.5)
            return web.Response(body=b"late")

        with pytest.raises(DownloadError, match="download of abc failed"):
            asyncio.run(call_drive(
                config,
                [web.get("/drive/v3/files/{file_id}", media)],
                lambda client: client.download("abc"),
                timeout=0.05,
            ))
