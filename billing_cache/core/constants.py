"""Core constants: cache key prefixes and shared literal values.

Single source of truth for the key layout in the backend:

    <namespace>:<suffix>                 cache entry
    cacheDeps:<dependencyKey>            set of cache keys depending on it
    cacheRecompute:<namespace>:<suffix>  recompute metadata for an entry
    cacheLru:<namespace>                 sorted set, score = populate time (ms)
"""

CACHE_KEY_SEP = ":"

CACHE_PREFIX_DEPENDENCY_REGISTRY = "cacheDeps"
CACHE_PREFIX_RECOMPUTE_METADATA = "cacheRecompute"
CACHE_PREFIX_LRU = "cacheLru"

# Seconds; used when neither CACHE_TTLS nor the namespace table sets a TTL.
DEFAULT_CACHE_TTL = 300

# Entries; used for namespaces missing from the eviction table.
DEFAULT_LRU_MAX_SIZE = 10_000
