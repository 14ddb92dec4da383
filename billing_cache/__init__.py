"""billing_cache: dependency-tracked, recomputable read-through cache for billing reads."""
