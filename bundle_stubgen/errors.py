"""Exception types raised while generating source stubs."""


class StubGenerationError(Exception):
    """Base class for every error raised by bundle_stubgen."""


class ClassFormatError(StubGenerationError, ValueError):
    """The bytes handed to the classfile reader are not a usable class file."""


class ClassLookupError(StubGenerationError, LookupError):
    """A class could not be located in any source of a repository."""

    def __init__(self, name: str, reason: str = "not found"):
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason


class StubWriteError(StubGenerationError):
    """Writing a stub file failed; the rest of the bundle is abandoned."""


class ConfigurationError(StubGenerationError):
    """An overrides document could not be read or has the wrong shape."""
