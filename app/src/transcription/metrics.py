"""In-process transcription performance counters."""

from datetime import datetime
from typing import Any, Dict


class PerformanceMetrics:
    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.total_transcriptions = 0
        self.total_processing_time = 0
        self.cache_hits = 0
        self.failures = 0
        self.last_reset = datetime.utcnow()

    @property
    def average_processing_time(self) -> float:
        if not self.total_transcriptions:
            return 0.0
        return self.total_processing_time / self.total_transcriptions

    def record_success(self, processing_time: int) -> None:
        self.total_transcriptions += 1
        self.total_processing_time += processing_time

    def record_cache_hit(self) -> None:
        self.cache_hits += 1

    def record_failure(self) -> None:
        self.failures += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalTranscriptions": self.total_transcriptions,
            "averageProcessingTime": self.average_processing_time,
            "totalProcessingTime": self.total_processing_time,
            "cacheHits": self.cache_hits,
            "failures": self.failures,
            "lastReset": self.last_reset.isoformat(),
        }
