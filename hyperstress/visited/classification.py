from enum import Enum


class Classification(Enum):
    NOT_SPECIAL = "not_special"
    SKIPPED = "skipped"
    UNREACHABLE = "unreachable"
    CHAR_DEVICE = "char_device"
    BLOCK_DEVICE = "block_device"
