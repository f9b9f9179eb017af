"""
Simulated AI defect analysis for inspection photos.

There is no model behind this: every image gets the same canned findings
and a fixed confidence, after an optional artificial delay. The shape of
DefectReport matches what the inspections table stores in
analysis_results / defects_found / confidence.
"""
import asyncio
import random
from dataclasses import dataclass, field, asdict
from typing import List, Optional

SIMULATED_CONFIDENCE: float = 0.85
SIMULATED_DEFECTS: List[str] = ["Crack detection (simulated)"]
SIMULATED_SEVERITY: str = "Medium"
SIMULATED_RECOMMENDATIONS: List[str] = ["Monitor and schedule maintenance"]


@dataclass
class DefectReport:
    filename: str
    defects: List[str] = field(default_factory=list)
    severity: str = SIMULATED_SEVERITY
    recommendations: List[str] = field(default_factory=list)
    confidence: float = SIMULATED_CONFIDENCE
    defects_found: bool = False
    simulated: bool = True

    def analysis_results(self) -> dict:
        return {
            "defects": list(self.defects),
            "severity": self.severity,
            "confidence": self.confidence,
            "recommendations": list(self.recommendations),
            "simulated": self.simulated,
        }

    def to_dict(self) -> dict:
        return asdict(self)


def confidence_band(confidence: Optional[float]) -> str:
    if confidence is None:
        return "low"
    if confidence >= 0.8:
        return "high"
    if confidence >= 0.6:
        return "medium"
    return "low"


class DefectAnalyzer:

    def __init__(self, delay_seconds: float = 0.0, rng: Optional[random.Random] = None):
        self.delay_seconds = delay_seconds
        self._rng = rng or random.Random()

    def analyze(self, filename: str) -> DefectReport:
        return DefectReport(
            filename=filename,
            defects=list(SIMULATED_DEFECTS),
            recommendations=list(SIMULATED_RECOMMENDATIONS),
            defects_found=self._rng.random() > 0.5,
        )

    async def analyze_async(self, filename: str) -> DefectReport:
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
        return self.analyze(filename)
