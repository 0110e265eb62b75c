"""
Converter — static constants and enum types.
"""
import enum
import logging


class TraceLevel(str, enum.Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return TRACE_LEVEL_RANKS[self]

    @property
    def logging_level(self) -> int:
        return TRACE_LOGGING_LEVELS[self]


# Severity order: debug < info < warn < error
TRACE_LEVEL_RANKS: dict[TraceLevel, int] = {
    TraceLevel.DEBUG: 0,
    TraceLevel.INFO: 1,
    TraceLevel.WARN: 2,
    TraceLevel.ERROR: 3,
}

# Log level used when the finalized trace record is written
TRACE_LOGGING_LEVELS: dict[TraceLevel, int] = {
    TraceLevel.DEBUG: logging.DEBUG,
    TraceLevel.INFO: logging.INFO,
    TraceLevel.WARN: logging.WARNING,
    TraceLevel.ERROR: logging.ERROR,
}


class UnitStage(str, enum.Enum):
    """Progress of one conversion unit through its pipeline."""
    PENDING = "PENDING"
    DOWNLOADED = "DOWNLOADED"
    CONVERTED = "CONVERTED"
    UPLOADED = "UPLOADED"
    CLEANED_UP = "CLEANED_UP"
    FAILED = "FAILED"
