__version__ = "0.1.0"

from .errors import ErrorKind, GenerationError
from .generation import GenerationService, generate
from .models import GenerationRequest, GenerationResult, ResultSource, ResultStatus
from .transport import CancellationToken, RetryPolicy

__all__ = [
    "CancellationToken",
    "ErrorKind",
    "GenerationError",
    "GenerationRequest",
    "GenerationResult",
    "GenerationService",
    "ResultSource",
    "ResultStatus",
    "RetryPolicy",
    "generate",
    "__version__",
]
