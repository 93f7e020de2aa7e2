class SourceError(Exception):
    """Raised when a news provider cannot be reached or returns an unusable payload."""


class AnalysisError(Exception):
    """Raised when the LLM analysis call fails or its response cannot be parsed."""


class ProfileNotFound(Exception):
    """Raised when a user profile lookup finds nothing."""

    def __init__(self, user_id: str):
        super().__init__(f"user profile not found: {user_id}")
        self.user_id = user_id
