"""Recompute metadata stored next to a recomputable cache entry."""

from pydantic import BaseModel, ConfigDict, Field

from billing_cache.domain.value_objects.transaction_context import TransactionContext

Scalar = str | int | float | bool

# Params must stay cheap to serialize: scalars or flat lists of scalars only.
SerializableParams = dict[str, Scalar | list[Scalar]]


class CacheRecomputeMetadata(BaseModel):
    """Everything needed to regenerate an entry without the calling request.

    Attributes:
        namespace: Namespace whose registered handler replays the computation.
        params: Serialized params of the populating call.
        transaction_context: Scope the populating call ran in.
        created_at: Epoch milliseconds when the entry was populated.
    """

    model_config = ConfigDict(frozen=True)

    namespace: str = Field(min_length=1)
    params: SerializableParams
    transaction_context: TransactionContext
    created_at: int
