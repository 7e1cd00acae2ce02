class MeterOCRError(Exception):
    """Base exception for meter reading errors."""

    def __init__(self, message: str):
        super().__init__(message)


class PersistenceError(MeterOCRError):
    """Raised when the persistence store cannot read or durably write records."""


class OCREngineError(MeterOCRError):
    """Raised by OCR engine adapters when recognition cannot be performed."""
