from .log_level_map import LogLevelMap
from .logging_config import LoggingConfig, LogOutput
from .stream_type import StreamType
