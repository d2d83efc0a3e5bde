"""Exception taxonomy for the exam client."""


class MockExamError(Exception):
    """Base class for every error raised by the exam client."""


class QuestionBankError(MockExamError):
    """The question table is malformed (bad line, duplicate id, unknown label...)."""


class SessionStateError(MockExamError):
    """An operation was attempted from a step that does not allow it."""


class DuplicateSubmitAttempt(MockExamError):
    """A submit arrived while another finalization was in flight. Logged, never shown."""


class StoreError(MockExamError):
    """The result store could not complete a read or write."""


class NetworkFailure(StoreError):
    """The store could not be reached (connection error, timeout, DNS...)."""


class PersistenceFailure(StoreError):
    """The store was reachable but rejected or failed the request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
