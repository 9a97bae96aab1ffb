import asyncio
import logging
import re
from typing import Dict, List, Optional, Sequence

from errors import DiscoveryError
from models import FileDescriptor

logger = logging.getLogger(__name__)


def quote_query_value(value: str) -> str:
    """Quote a value for a Drive ``q`` string, escaping backslashes and apostrophes."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class FileDiscovery:
    """Find the practice CSV files in a Drive folder.

    The remote name filter is loose, so every hit is re-checked against the
    ``<prefix><n>`` naming convention. When fewer than ``min_expected`` files
    survive, exact-name probes for ``<prefix><n>_<suffix>.<extension>`` are
    sent concurrently and merged with the filtered hits by file id.
    """

    SEARCH_FIELDS = "files(id, name, size, createdTime)"
    DIAGNOSTIC_FIELDS = "files(id, name, parents)"

    def __init__(
        self,
        drive,
        folder_id: Optional[str] = None,
        name_markers: Sequence[str] = ("class", "hands_on"),
        prefix: str = "class",
        suffix: str = "hands_on",
        extension: str = "csv",
        mime_type: str = "text/csv",
        probe_count: int = 10,
        min_expected: int = 2,
        page_size: int = 100,
        diagnostic_page_size: int = 1000,
    ):
        self.drive = drive
        self.folder_id = folder_id
        self.name_markers = tuple(name_markers)
        self.prefix = prefix
        self.suffix = suffix
        self.extension = extension
        self.mime_type = mime_type
        self.probe_count = probe_count
        self.min_expected = min_expected
        self.page_size = page_size
        self.diagnostic_page_size = diagnostic_page_size
        self.name_pattern = re.compile(rf"^({re.escape(prefix)}\d+)", re.IGNORECASE)

    @property
    def folder_clause(self) -> str:
        if not self.folder_id:
            return ""
        return f"{quote_query_value(self.folder_id)} in parents and "

    @property
    def type_clause(self) -> str:
        return f"mimeType={quote_query_value(self.mime_type)} and trashed=false"

    def expected_name(self, index: int) -> str:
        return f"{self.prefix}{index}_{self.suffix}.{self.extension}"

    def describe_location(self) -> str:
        if self.folder_id:
            return f"in the specified folder ID: {self.folder_id}"
        return "in Google Drive"

    def build_search_query(self) -> str:
        names = " or ".join(f"name contains {quote_query_value(marker)}" for marker in self.name_markers)
        return f"{self.folder_clause}({names}) and {self.type_clause}"

    def build_probe_query(self, index: int) -> str:
        return f"{self.folder_clause}name = {quote_query_value(self.expected_name(index))} and {self.type_clause}"

    def matches_naming(self, name: str) -> bool:
        return bool(self.name_pattern.match(name or ""))

    async def _list(self, query: str, fields: str, page_size: Optional[int] = None,
                    order_by: Optional[str] = None) -> List[FileDescriptor]:
        try:
            return await self.drive.list_files(query, fields, page_size=page_size, order_by=order_by)
        except DiscoveryError:
            raise
        except Exception as e:
            raise DiscoveryError(f"File search failed: {e}") from e

    async def log_all_candidates(self):
        """Log every file of the expected type in the folder."""
        all_files = await self._list(
            f"{self.folder_clause}{self.type_clause}",
            self.DIAGNOSTIC_FIELDS,
            page_size=self.diagnostic_page_size,
            order_by="name",
        )
        logger.info(f"Diagnostic search found {len(all_files)} accessible {self.extension} files")
        for item in all_files:
            logger.debug(f"  - {item.name} ({item.id}) parents: {', '.join(item.parents or ['root'])}")

    async def probe_expected_names(self) -> List[FileDescriptor]:
        results = await asyncio.gather(*[
            self._list(self.build_probe_query(index), self.SEARCH_FIELDS)
            for index in range(1, self.probe_count + 1)
        ], return_exceptions=True)

        # Every probe has settled here; surface the first failure
        for result in results:
            if isinstance(result, BaseException):
                raise result

        found = [item for result in results for item in result]
        logger.info(f"Individual file search found: {[item.name for item in found]}")
        return found

    async def search_practice_files(self) -> List[FileDescriptor]:
        if not self.folder_id:
            logger.warning("No practice folder ID set. Performing broad search.")

        try:
            raw_files = await self._list(
                self.build_search_query(),
                self.SEARCH_FIELDS,
                page_size=self.page_size,
                order_by="name",
            )
            logger.info(f"Raw search results ({len(raw_files)} files): {[f'{f.name} ({f.id})' for f in raw_files]}")

            files = [item for item in raw_files if self.matches_naming(item.name)]
            logger.info(f"Filtered files by '{self.prefix}N' prefix ({len(files)} files): {[f.name for f in files]}")

            if len(files) >= self.min_expected:
                return files

            logger.info("Fewer files than expected, running diagnostic searches...")
            await self.log_all_candidates()
            probed = await self.probe_expected_names()

            merged: Dict[str, FileDescriptor] = {}
            for item in files + probed:
                merged.setdefault(item.id, item)

            logger.info(f"Combined results: {len(merged)} files")
            return list(merged.values())

        except DiscoveryError as e:
            logger.error(f"Search error: {e}")
            raise
