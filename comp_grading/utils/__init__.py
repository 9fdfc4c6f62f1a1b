from .status_enums import HistoryAction, ScenarioStatus

__all__ = ["HistoryAction", "ScenarioStatus"]
