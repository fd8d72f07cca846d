"""Exception types shared across the archiver."""


class ArchiverError(Exception):
    """Base class for archiver failures."""


class ConfigError(ArchiverError):
    """Configuration could not be resolved.

    Carries every problem found, not just the first one.
    """

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class ArchiveError(ArchiverError):
    """Building the archive failed."""


class UploadError(ArchiverError):
    """Transferring the archive to the bucket failed."""


class RunCancelled(ArchiverError):
    """A pipeline run was interrupted by a stop request."""
