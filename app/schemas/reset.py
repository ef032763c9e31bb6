"""Internal schema handed from the reset flow to the mail collaborator."""

from pydantic import BaseModel, ConfigDict, Field


class ResetDelivery(BaseModel):
    """A freshly issued reset token and where to send it. Never serialized to clients."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    email: str
    name: str | None = None
    token: str = Field(..., repr=False)
