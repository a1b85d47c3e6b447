from .config import LoggingConfig, LogOutput
from .models import Entry, Log, LogLevel, LogLevelName
from .streams import DEFAULT_TEMPLATE, Logger, LoggerContext, LoggerStream
