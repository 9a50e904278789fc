"""API key and balance response models.

The key endpoint has answered in several shapes over time: a bare list or a
``{"data": [...]}`` envelope, with each item either the key itself or an
object carrying it under ``key`` or ``token``. All of them normalize to a
flat list of strings.
"""

from __future__ import annotations

from typing import Annotated, Union

from pydantic import BaseModel, Field, TypeAdapter


class _KeyItem(BaseModel):
    key: str


class _TokenItem(BaseModel):
    token: str


ApiKeyItem = Annotated[
    Union[str, _KeyItem, _TokenItem], Field(union_mode="left_to_right")
]


class _ApiKeyEnvelope(BaseModel):
    data: list[ApiKeyItem]


ApiKeysPayload = Annotated[
    Union[list[ApiKeyItem], _ApiKeyEnvelope], Field(union_mode="left_to_right")
]

API_KEYS_ADAPTER = TypeAdapter(ApiKeysPayload)


def flatten_api_keys(payload: list[ApiKeyItem] | _ApiKeyEnvelope) -> list[str]:
    """Turn a validated key payload into a list of non-empty key strings."""
    items = payload.data if isinstance(payload, _ApiKeyEnvelope) else payload

    keys: list[str] = []
    for item in items:
        if isinstance(item, _KeyItem):
            value = item.key
        elif isinstance(item, _TokenItem):
            value = item.token
        else:
            value = item
        if value:
            keys.append(value)
    return keys


class BalanceData(BaseModel):
    quota: float
    used_quota: float


class BalanceResponse(BaseModel):
    """Balance endpoint response: ``{success, data: {quota, used_quota}}``."""

    success: bool
    data: BalanceData


BALANCE_RESPONSE_ADAPTER = TypeAdapter(BalanceResponse)


class Balance(BaseModel):
    """Remaining balance in currency units."""

    balance: float
