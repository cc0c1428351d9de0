from __future__ import annotations


class CardStampError(Exception):
    """Base class for errors raised by the card rendering engine."""


class DesignAssetError(CardStampError, ValueError):
    """Raised when the design asset cannot be composited (e.g. a PDF upload)."""


class PreviewNotMeasuredError(CardStampError, RuntimeError):
    """Raised when the preview size is unknown, so preview→natural mapping is undefined."""


class RecordRenderError(CardStampError):
    def __init__(self, record_name: str, cause: BaseException) -> None:
        super().__init__(f"{record_name or '<unnamed>'}: {cause}")
        self.record_name = record_name
        self.cause = cause


class ExportError(CardStampError, RuntimeError):
    """Raised when a batch export aborts; no container is emitted."""
