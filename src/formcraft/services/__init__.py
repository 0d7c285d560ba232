from formcraft.services.drafts import DraftAutosaver, DraftService, throttle
from formcraft.services.forms import FormService
from formcraft.services.responses import ResponseService

__all__ = [
    "DraftAutosaver",
    "DraftService",
    "FormService",
    "ResponseService",
    "throttle",
]
