from .graph import TurnState, create_turn_graph
from .models import TurnResult, TurnStage
from .service import AIService

__all__ = [
    "AIService",
    "TurnResult",
    "TurnStage",
    "TurnState",
    "create_turn_graph",
]
