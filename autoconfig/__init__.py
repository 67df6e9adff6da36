from .events import EventBus
from .config import Config
from .memory import (
    PreferenceEngine,
    PreferenceMemoryConfig,
    EmbeddingLookup,
    HashingEmbeddingModel,
    JsonFileBackend,
    InMemoryBackend,
    Tier,
)
