from __future__ import annotations


class ChatError(Exception):
    def __init__(self, message: str, error_code: str) -> None:
        super().__init__(message)
        self.error_code = error_code


class AgentNotFoundError(ChatError):
    def __init__(self, agent_id: int) -> None:
        super().__init__(
            message=f"Agent {agent_id} does not exist.",
            error_code="AGENT_NOT_FOUND",
        )


class AgentNotAvailableError(ChatError):
    def __init__(self, agent_id: int) -> None:
        super().__init__(
            message=f"Agent {agent_id} is private and cannot be used by guests.",
            error_code="AGENT_NOT_AVAILABLE",
        )


class SessionNotFoundError(ChatError):
    def __init__(self, session_id: int) -> None:
        super().__init__(
            message=f"Chat session {session_id} was not found.",
            error_code="SESSION_NOT_FOUND",
        )


class RetrievalError(ChatError):
    """Recorded in the turn state; the turn continues without context."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            message=f"Context retrieval failed: {detail}",
            error_code="RETRIEVAL_FAILED",
        )


class CompletionError(ChatError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            message=f"Completion failed: {detail}",
            error_code="COMPLETION_FAILED",
        )


class StorageError(ChatError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            message=f"Storage operation failed: {detail}",
            error_code="STORAGE_ERROR",
        )
