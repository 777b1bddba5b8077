from shared.schemas.agents import AgentProfile, AgentVisibility, ModelProvider
from shared.schemas.base import ErrorResponse, HealthResponse
from shared.schemas.documents import RetrievedChunk, TrainingDocument

__all__ = [
    "HealthResponse",
    "ErrorResponse",
    "AgentProfile",
    "AgentVisibility",
    "ModelProvider",
    "RetrievedChunk",
    "TrainingDocument",
]
