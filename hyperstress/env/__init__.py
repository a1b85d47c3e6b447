from .env import Env
from .load_env import load_env
from .time_parser import TimeParser
