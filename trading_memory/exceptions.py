"""
Custom exception hierarchy for trading_memory.

All memory subsystem exceptions derive from TradingMemoryError for easy catching.
Organized by domain: Configuration, Store, Retrieval, Trigger, Reflection.
"""


class TradingMemoryError(Exception):
    """Base exception for all trading memory errors."""
    pass


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(TradingMemoryError):
    """Configuration-related errors (env vars, settings)."""
    pass


class InvalidConfigValueError(ConfigurationError):
    """Configuration value invalid or out of range."""
    pass


# ============================================================================
# Memory Store Errors
# ============================================================================

class MemoryStoreError(TradingMemoryError):
    """Memory store errors."""

    def __init__(self, message: str, file_path: str = None):
        """
        Initialize store error with the backing file for context.

        Args:
            message: Error message
            file_path: Backing artifact the operation was working on
        """
        self.file_path = file_path

        full_message = message
        if file_path:
            full_message = f"{message} ({file_path})"

        super().__init__(full_message)


class MemoryNotInitializedError(MemoryStoreError):
    """Store operation called before initialize() succeeded."""
    pass


class MemoryLoadError(MemoryStoreError):
    """Failed to read the backing memory file."""
    pass


class MemoryPersistenceError(MemoryStoreError):
    """Failed to write the backing memory file or create its directory."""
    pass


# ============================================================================
# Retrieval Errors (LLM relevance scoring)
# ============================================================================

class RetrievalError(TradingMemoryError):
    """Relevance retrieval failed (store fetch or completion call)."""
    pass


class EmptyCompletionError(RetrievalError):
    """Completion call returned no choices or empty text."""
    pass


# ============================================================================
# Trigger Errors
# ============================================================================

class TriggerError(TradingMemoryError):
    """Memory trigger errors."""
    pass


class EmptyPromptError(TriggerError):
    """Manual trigger configured with an empty prompt."""
    pass


# ============================================================================
# Reflection Errors
# ============================================================================

class ReflectionError(TradingMemoryError):
    """Reflection generation failed."""
    pass


class ReflectionParseError(ReflectionError):
    """Reflection text could not be turned into a memory."""
    pass
