"""Exception hierarchy for depwright."""


class DepwrightError(Exception):
    """Base class for all depwright errors."""


class VersionParseError(DepwrightError, ValueError):
    """A version string could not be parsed into numeric components."""

    def __init__(self, version: str, reason: str = "non-numeric component"):
        self.version = version
        self.reason = reason
        super().__init__(f"Cannot parse version '{version}': {reason}")


class ManifestError(DepwrightError):
    """The dependency manifest is malformed."""


class InstallInProgressError(DepwrightError):
    """Another installation is already running on this instance."""


class PipelineError(DepwrightError):
    """A package install pipeline step failed."""


class InsufficientDiskSpaceError(PipelineError):
    """Not enough free space to install a package."""


class PackageSourceError(PipelineError):
    """The package archive could not be fetched from its source."""


class ExtractionError(PipelineError):
    """The package archive could not be extracted."""


class VerificationError(PipelineError):
    """The extracted package is missing its entry point."""
