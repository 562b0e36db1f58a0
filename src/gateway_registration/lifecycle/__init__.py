from .service import RegistrationService
from .signals import TerminationWatcher

__all__ = [
    "RegistrationService",
    "TerminationWatcher",
]
