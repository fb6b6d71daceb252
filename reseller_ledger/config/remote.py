"""
Remote Backend Configuration

The operator pastes the web config object of their cloud project when
connecting. It is validated eagerly into `RemoteBackendConfig` so that a
malformed blob fails with `ConfigInvalidError` naming the bad fields,
before any connection attempt.
"""

import json
from collections.abc import Mapping
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from reseller_ledger.errors import ConfigInvalidError


class RemoteBackendConfig(BaseModel):
    """
    Structured remote backend configuration.

    Accepts both the camelCase keys of a pasted web config
    (`apiKey`, `projectId`, ...) and snake_case names.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
        extra="ignore",
    )

    api_key: str = Field(..., min_length=1, description="Web API key of the project")
    auth_domain: str = Field(..., min_length=1, description="Identity provider domain")
    project_id: str = Field(..., min_length=1, description="Cloud project id")

    storage_bucket: Optional[str] = None
    messaging_sender_id: Optional[str] = None
    app_id: Optional[str] = None

    # Falls back to Application Default Credentials when absent
    service_account_path: Optional[str] = None

    def to_storage_json(self) -> str:
        """Serialize for the local config key."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


def parse_remote_config(raw: Union[str, bytes, Mapping[str, Any]]) -> RemoteBackendConfig:
    """
    Parse and validate an operator-supplied backend config.

    Args:
        raw: JSON text or an already-decoded mapping

    Returns:
        The validated configuration

    Raises:
        ConfigInvalidError: If the blob is not a JSON object or a
            required field is missing or empty
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigInvalidError(
                f"Backend config is not valid JSON: {e}",
                user_message="The backend configuration is not valid JSON.",
            ) from e
    else:
        data = raw

    if not isinstance(data, Mapping):
        raise ConfigInvalidError(
            f"Backend config must be a JSON object, got {type(data).__name__}",
            user_message="The backend configuration must be a JSON object.",
        )

    try:
        return RemoteBackendConfig.model_validate(dict(data))
    except ValidationError as e:
        fields = sorted({
            str(error["loc"][0]) for error in e.errors() if error.get("loc")
        })
        raise ConfigInvalidError(
            f"Backend config failed validation: {e}",
            fields=fields,
        ) from e
