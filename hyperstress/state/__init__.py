from .proc_state import ProcessStateSink, ProcState, RecordingStateSink
