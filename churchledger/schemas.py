"""
Pydantic schemas for the API, with strict validation.

- String inputs carry explicit max_length.
- Request body models use extra="forbid" to reject unexpected fields.
- JSON field names follow the dashboard's camelCase (externalAccountId).
"""
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

MAX_LEN_OAUTH_CODE = 512
MAX_LEN_ACCOUNT_ID = 100
MAX_LEN_STATE = 128
MAX_SETTINGS_KEYS = 200


class IntegrationStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    connected: bool
    external_account_id: Optional[str] = Field(None, serialization_alias="externalAccountId")


class ConnectAction(BaseModel):
    """Exchange an OAuth authorization code; realmId (QuickBooks) or tenantId (Xero) are accepted aliases."""
    model_config = ConfigDict(extra="forbid")
    action: Literal["connect"]
    code: str = Field(
        ...,
        min_length=1,
        max_length=MAX_LEN_OAUTH_CODE,
        validation_alias=AliasChoices("code", "authorizationCode"),
    )
    external_account_id: Optional[str] = Field(
        None,
        min_length=1,
        max_length=MAX_LEN_ACCOUNT_ID,
        validation_alias=AliasChoices("externalAccountId", "realmId", "tenantId", "external_account_id"),
    )


class SyncAction(BaseModel):
    model_config = ConfigDict(extra="forbid")
    action: Literal["sync"]


IntegrationAction = Annotated[Union[ConnectAction, SyncAction], Field(discriminator="action")]


class ConnectResult(BaseModel):
    success: bool = True
    connected: bool = True
    external_account_id: str = Field(..., serialization_alias="externalAccountId")


class SyncResult(BaseModel):
    success: bool = True
    synced: int
    total: int


class DisconnectResult(BaseModel):
    success: bool = True
    connected: bool = False


class ChurchSettingsOut(BaseModel):
    settings: dict[str, Any]
    version: int


class ChurchSettingsPatch(BaseModel):
    """Shallow merge into the settings document; `version` must match the current one."""
    model_config = ConfigDict(extra="forbid")
    settings: dict[str, Any] = Field(..., max_length=MAX_SETTINGS_KEYS)
    version: int = Field(..., ge=0)
