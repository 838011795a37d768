"""Scene edit assistant: instruction + scene snapshot -> validated operations."""

from .classifier import classify
from .errors import AllProvidersExhausted, EditAssistantError, ProviderUnavailable, RequestValidationError
from .models import EditMode, GenerationResult
from .orchestrator import GenerationOrchestrator
from .providers import ProviderKind, ProviderRegistry
from .scene import build_scene_tree
from .validator import validate_operations

__version__ = "1.0.0"

__all__ = [
    "AllProvidersExhausted",
    "EditAssistantError",
    "EditMode",
    "GenerationOrchestrator",
    "GenerationResult",
    "ProviderKind",
    "ProviderRegistry",
    "ProviderUnavailable",
    "RequestValidationError",
    "build_scene_tree",
    "classify",
    "validate_operations",
]
