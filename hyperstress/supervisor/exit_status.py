from enum import IntEnum


class ExitStatus(IntEnum):
    SUCCESS = 0
    FAILURE = 1
    NOT_SUCCESS = 2
    NO_RESOURCE = 3
    NOT_IMPLEMENTED = 4

    @property
    def is_skip(self) -> bool:
        return self in (ExitStatus.NO_RESOURCE, ExitStatus.NOT_IMPLEMENTED)
