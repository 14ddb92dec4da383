"""Small shared helpers (time)."""

from billing_cache.shared.utils.datetime import epoch_ms, utc_now

__all__ = ["epoch_ms", "utc_now"]
