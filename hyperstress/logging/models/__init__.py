from .entry import Entry
from .log import Log
from .log_level import LogLevel, LogLevelName
