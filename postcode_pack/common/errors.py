"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pack build and lookup failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class PackIOError(PipelineError):
    """Raised when reading, writing or downloading a file fails."""

    error_code = "IO_ERROR"


class InputMalformedError(PipelineError):
    """Raised when the source dataset is not well formed."""

    error_code = "INPUT_MALFORMED"


class InvalidFormatError(PipelineError):
    """Raised when a postcode does not match the canonical grammar."""

    error_code = "INVALID_FORMAT"


class NotFoundError(PipelineError):
    """Raised when a postcode is well formed but not present in a pack."""

    error_code = "NOT_FOUND"


class ContractError(PipelineError):
    """Raised when packing invariants or the pack file layout are broken."""

    error_code = "CONTRACT_ERROR"
