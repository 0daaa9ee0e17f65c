"""Delta sync entry, exit and position management rules."""

from deltasync.signals.evaluator import DecisionKind, SignalDecision, SignalEvaluator

__all__ = ["DecisionKind", "SignalDecision", "SignalEvaluator"]
