"""Error types for completion detection."""


class CompletionDetectionError(RuntimeError):
    pass


class StoreUnavailableError(CompletionDetectionError):
    """A canonical store could not be reached. Detection cannot continue."""


class EmbeddingProviderError(CompletionDetectionError):
    pass


class ClassifierError(CompletionDetectionError):
    pass
