"""Assessment error hierarchy."""


class AssessmentError(Exception):
    """Base assessment error."""

    def __init__(self, message: str, code: str = "assessment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class QuizNotFoundError(AssessmentError):
    """Quiz does not exist."""

    def __init__(self, message: str = "Quiz not found"):
        super().__init__(message, "quiz_not_found")


class InvalidSubmissionError(AssessmentError):
    """Selected options do not match the quiz."""

    def __init__(self, message: str = "Invalid quiz submission"):
        super().__init__(message, "invalid_submission")


# ==============================================================================
# Store failures
# ==============================================================================


class AttemptPersistenceError(AssessmentError):
    """Attempt could not be written."""

    def __init__(self, message: str, code: str = "attempt_persistence_failed"):
        super().__init__(message, code)


class DuplicateAttemptError(AttemptPersistenceError):
    """Legacy single-attempt constraint on (learner, quiz) violated."""

    def __init__(self, message: str = "An attempt for this quiz already exists"):
        super().__init__(message, "duplicate_attempt")


class AttemptRejectedError(AttemptPersistenceError):
    """Store rejected the attempt payload."""

    def __init__(self, message: str = "Attempt payload rejected"):
        super().__init__(message, "attempt_rejected")


class AttemptStoreError(AttemptPersistenceError):
    """Any other store failure."""

    def __init__(self, message: str = "Attempt store unavailable"):
        super().__init__(message, "attempt_store_error")
