"""
Request orchestration runtime.

Leaf components composed by the services layer and the client:

    - cache.py: BoundedCache (LRU) and TTLCache
    - shared_cache.py: SharedTranslationCache over a TranslationStore
    - inflight.py: InFlightDeduplicator
    - retry.py: RetryExecutor
    - credentials.py: CredentialResolver
    - fallback.py: SpeechFallbackChain
    - batcher.py: RequestBatchingQueue
"""
