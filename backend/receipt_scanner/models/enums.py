"""Enumeration types used throughout the receipt scanner.

Enumerations make it easier to constrain the values that flow through
configuration, logging and health reporting.
"""

from enum import Enum


class ExtractionBackendName(str, Enum):
    """Extraction strategies in fallback priority order."""

    STRUCTURED_VISION = "structured_vision"
    OCR_VISION = "ocr_vision"
    LOCAL_OCR = "local_ocr"


class StorageBackend(str, Enum):
    """Where uploaded receipt images are kept."""

    FILESYSTEM = "filesystem"
    MINIO = "minio"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
