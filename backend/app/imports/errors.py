"""Exception taxonomy for the import pipeline.

Structural and mapping errors abort a whole session before any record is
submitted. Coercion never raises. Submission failures are not exceptions
at this level: they are collected as row errors in the ImportOutcome.
"""


class DataImportError(Exception):
    """Base class for errors that abort an import session."""


class MalformedInputError(DataImportError):
    """The uploaded text cannot be turned into a header plus data rows."""

    def __init__(self, message: str, line: int | None = None):
        super().__init__(message)
        self.line = line


class MissingRequiredFieldError(DataImportError):
    """One or more required destination fields have no source column."""

    def __init__(self, labels: list[str]):
        self.labels = list(labels)
        super().__init__(f"Missing required fields: {', '.join(self.labels)}")


class UnknownColumnError(DataImportError):
    """A manual mapping names a column that is not in the uploaded header."""

    def __init__(self, key: str, column: str):
        self.key = key
        self.column = column
        super().__init__(f"Column '{column}' for field '{key}' is not in the file header")


class BatchStateError(RuntimeError):
    """A batch was moved through an illegal state transition."""
