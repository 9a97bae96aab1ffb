class IngestionError(Exception):
    """Base class for failures raised while ingesting practice files."""


class ConfigError(IngestionError):
    """Required configuration (credentials, quiz number) is missing or invalid."""


class DiscoveryError(IngestionError):
    """The remote listing call failed."""


class DownloadError(IngestionError):
    """A single file could not be downloaded."""


class SchemaError(IngestionError):
    """A header row has no recognizable instruction or solution column."""


class EmptyResultError(IngestionError):
    """No valid questions were produced by the whole run."""
