"""Identity context schemas."""

from pydantic import BaseModel, ConfigDict

from volunteer_app.models.account import IDENTITY_ORGANIZATION, IDENTITY_VOLUNTEER


class Actor(BaseModel):
    """Already-authenticated account acting on the ledger."""

    account_id: int
    identity_type: str

    model_config = ConfigDict(frozen=True)

    @property
    def is_volunteer(self) -> bool:
        return self.identity_type == IDENTITY_VOLUNTEER

    @property
    def is_organization(self) -> bool:
        return self.identity_type == IDENTITY_ORGANIZATION
