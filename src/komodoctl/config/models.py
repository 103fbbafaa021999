# src/komodoctl/config/models.py

from typing import List, Literal, Optional
from pydantic import BaseModel, Field, PositiveFloat, PositiveInt


class ControlPlaneConfig(BaseModel):
    endpoint: str                          # base URL; "write", "read", "execute" are appended
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    timeout_seconds: PositiveFloat = 30.0  # per HTTP request
    busy_markers: List[str] = Field(default_factory=lambda: ["busy"])
    not_found_markers: List[str] = Field(
        default_factory=lambda: ["not found", "did not find", "no server matching"]
    )


class NodeConfig(BaseModel):
    scheme: Literal["http", "https"] = "https"
    port: PositiveInt = 8120
    ready_status: str = "Ok"


class PollConfig(BaseModel):
    max_attempts: PositiveInt = 30
    interval_seconds: PositiveFloat = 10.0


class SettleConfig(BaseModel):
    """Fixed waits where the control plane offers nothing to poll."""

    after_sync_seconds: float = Field(15.0, ge=0)
    after_destroy_seconds: float = Field(5.0, ge=0)
    between_deletes_seconds: float = Field(2.0, ge=0)
    after_repository_seconds: float = Field(2.0, ge=0)


class RetryConfig(BaseModel):
    procedure_attempts: PositiveInt = 5    # procedure and sync deletions
    node_attempts: PositiveInt = 3
    base_seconds: float = Field(3.0, ge=0)
    jitter_seconds: float = Field(3.0, ge=0)


class WorkflowConfig(BaseModel):
    reachable_poll: PollConfig = PollConfig()
    ready_poll: PollConfig = PollConfig()
    settle: SettleConfig = SettleConfig()
    retry: RetryConfig = RetryConfig()
    timeout_seconds: Optional[PositiveFloat] = None


class SourceControlConfig(BaseModel):
    enabled: bool = False
    token: Optional[str] = None
    org: Optional[str] = None              # empty -> authenticated user's account
    git_account: str = "manidaecloud"      # account the control plane pulls with
    api_url: str = "https://api.github.com"
    timeout_seconds: PositiveFloat = 30.0


class KomodoConfig(BaseModel):
    control_plane: ControlPlaneConfig
    node: NodeConfig = NodeConfig()
    workflow: WorkflowConfig = WorkflowConfig()
    source_control: SourceControlConfig = SourceControlConfig()
