class MetadataError(Exception):
    """Base class for every error raised while building or uploading metadata."""


class ConfigurationError(MetadataError):
    """Inputs are unusable: missing file, bad folder, unknown or duplicate column."""


class TransformError(MetadataError):
    """A row could not be read or its document could not be written."""


class RemoteLookupError(MetadataError):
    """The entity could not be fetched from the repository."""


class RemoteUpdateError(MetadataError):
    """The repository refused the metadata update, or the call itself failed."""
