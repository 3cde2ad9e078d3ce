from .main import InternshipManager
from .status import TRANSITIONS, StatusStateMachine, can_transition, sources_for

__all__ = ["InternshipManager", "StatusStateMachine", "TRANSITIONS", "can_transition", "sources_for"]
