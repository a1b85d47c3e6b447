from .logger import Logger
from .logger_context import LoggerContext
from .logger_stream import DEFAULT_TEMPLATE, LoggerStream
