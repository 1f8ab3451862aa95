"""Base model configuration for declarations and settings."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Immutable model that rejects unknown keys in declaration files."""

    model_config = ConfigDict(frozen=True, extra="forbid")
