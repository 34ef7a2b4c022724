"""Merge detection result models."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class MethodResult:
    """Outcome of a single merge detection strategy."""

    method: str
    is_merged: bool
    confidence: float
    details: Optional[str] = None
    error: Optional[str] = None
    soft_signal: bool = False  # Only heuristic evidence backs this verdict


@dataclass
class MergeDetectionResult:
    """Combined verdict of all merge detection strategies for one branch."""

    is_merged: bool
    detection_method: str
    confidence: float
    details: Optional[str] = None
    method_results: list[MethodResult] = field(default_factory=list)
    soft_signal: bool = False

    @classmethod
    def combine(cls, method_results: list[MethodResult]) -> "MergeDetectionResult":
        """Pick the most confident positive result, else the most confident negative.

        Ties keep the earliest result, so declaration order breaks them.
        """
        if not method_results:
            return cls(
                is_merged=False,
                detection_method="none",
                confidence=0.0,
                details="No detection methods available",
                method_results=method_results,
            )

        best_positive = _most_confident(r for r in method_results if r.is_merged)
        if best_positive is not None:
            return cls(
                is_merged=True,
                detection_method=best_positive.method,
                confidence=best_positive.confidence,
                details=best_positive.details,
                method_results=method_results,
                soft_signal=best_positive.soft_signal,
            )

        best_negative = _most_confident(method_results)
        return cls(
            is_merged=False,
            detection_method=best_negative.method,
            confidence=best_negative.confidence,
            details=best_negative.details,
            method_results=method_results,
        )

    @property
    def errors(self) -> list[MethodResult]:
        return [r for r in self.method_results if r.error]

    def summary(self) -> str:
        """One-line description for display."""
        verdict = "merged" if self.is_merged else "not merged"
        text = f"{verdict} via {self.detection_method} ({self.confidence:.0%})"
        if self.details:
            text += f": {self.details}"
        return text


# The status model refers to the verdict as merge info
MergeInfo = MergeDetectionResult


def _most_confident(results) -> Optional[MethodResult]:
    best = None
    for result in results:
        if best is None or result.confidence > best.confidence:
            best = result
    return best
