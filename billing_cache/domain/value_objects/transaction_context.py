"""Transaction context: the authorization scope a cached computation ran in.

A tagged union on ``type``: admin, merchant or customer.
Captured when a recomputable entry is populated and replayed when it is
recomputed, so the recomputation sees exactly the rows the original
caller could see.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _ContextBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    livemode: bool


class AdminTransactionContext(_ContextBase):
    """Unscoped (service-level) access; no tenant binding."""

    type: Literal["admin"] = "admin"


class MerchantTransactionContext(_ContextBase):
    """Access scoped to one organization as one merchant user."""

    type: Literal["merchant"] = "merchant"
    organization_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)


class CustomerTransactionContext(_ContextBase):
    """Access scoped to one customer of one organization."""

    type: Literal["customer"] = "customer"
    organization_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    customer_id: str = Field(min_length=1)


TransactionContext = Annotated[
    AdminTransactionContext | MerchantTransactionContext | CustomerTransactionContext,
    Field(discriminator="type"),
]

transaction_context_adapter: TypeAdapter[TransactionContext] = TypeAdapter(TransactionContext)
