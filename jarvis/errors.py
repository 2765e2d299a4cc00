class JarvisError(Exception):
    """Base class for every error raised by the jarvis pipeline."""


class ConfigError(JarvisError):
    """Missing or invalid configuration, or a directory that cannot be created."""


class PlatformError(JarvisError):
    """The host OS has no known microphone input mapping."""


class AlreadyStarted(JarvisError):
    pass


class STTUnavailable(JarvisError):
    """The speech-to-text engine cannot be reached at startup."""


class STTError(JarvisError):
    pass


class LLMTimeout(JarvisError):
    """The interpreter did not answer within its deadline."""


class LLMError(JarvisError):
    pass


class MediaToolError(JarvisError):
    """ffmpeg could not be launched or exited non-zero."""


class FSEventError(JarvisError):
    pass


class TransportError(JarvisError):
    """TCP connect, accept, read or write failure on the executor link."""
