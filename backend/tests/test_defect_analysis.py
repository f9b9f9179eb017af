"""
test_defect_analysis.py — Simulated photo defect analysis.
"""

import asyncio
import random

from app.services.defect_analysis import (
    SIMULATED_CONFIDENCE,
    DefectAnalyzer,
    confidence_band,
)


def test_canned_findings():
    report = DefectAnalyzer(rng=random.Random(1)).analyze("photo.jpg")
    results = report.analysis_results()
    assert results["defects"] == ["Crack detection (simulated)"]
    assert results["severity"] == "Medium"
    assert results["recommendations"] == ["Monitor and schedule maintenance"]
    assert results["confidence"] == SIMULATED_CONFIDENCE
    assert results["simulated"] is True


def test_defects_found_follows_rng():
    class Fixed(random.Random):
        def __init__(self, value):
            super().__init__()
            self.value = value

        def random(self):
            return self.value

    assert DefectAnalyzer(rng=Fixed(0.9)).analyze("a.jpg").defects_found is True
    assert DefectAnalyzer(rng=Fixed(0.5)).analyze("a.jpg").defects_found is False


def test_async_variant():
    report = asyncio.run(DefectAnalyzer(delay_seconds=0.01).analyze_async("b.jpg"))
    assert report.filename == "b.jpg"


def test_confidence_bands():
    assert confidence_band(0.85) == "high"
    assert confidence_band(0.7) == "medium"
    assert confidence_band(0.2) == "low"
    assert confidence_band(None) == "low"
