from .logger_stream import LoggerStream


class LoggerContext:
    def __init__(
        self,
        name: str | None = None,
        template: str | None = None,
        filename: str | None = None,
        directory: str | None = None,
        nested: bool = False,
    ) -> None:
        self.name = name
        self.template = template
        self.filename = filename
        self.directory = directory
        self.stream = LoggerStream(
            name=name,
            template=template,
            filename=filename,
            directory=directory,
        )
        self.nested = nested

    def __enter__(self):
        self.stream._default_template = self.template
        self.stream._default_logfile = self.filename
        self.stream._default_log_directory = self.directory
        return self.stream

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.nested is False:
            self.stream.close()
