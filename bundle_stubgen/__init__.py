"""Generate Java source stubs from compiled OSGi bundles."""
from .classfile import parse_classfile
from .config import DEFAULT_POLICY, MethodMatcher, OverridePolicy
from .errors import (
    ClassFormatError,
    ClassLookupError,
    ConfigurationError,
    StubGenerationError,
    StubWriteError,
)
from .exports import find_exported_packages
from .repository import ClassRepository
from .writer import StubWriter, generate_stub_projects

__version__ = "0.1.0"
