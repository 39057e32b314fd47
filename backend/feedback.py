"""
Offline analysis of task parsing logs: success rate, error patterns, and the
insights/recommendations derived from them.
"""
import logging
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)


class FeedbackProcessor:
    def __init__(self, min_sample_size: int = 100, error_rate_threshold: float = 0.2, confidence_threshold: float = 0.7):
        self.min_sample_size = min_sample_size
        self.error_rate_threshold = error_rate_threshold
        self.confidence_threshold = confidence_threshold

    def analyze_logs(self, logs: list[dict[str, Any]]) -> dict[str, Any]:
        """Analyze parsing log records as returned by database.get_parsing_logs_db."""
        total = len(logs)
        successful = [log for log in logs if log.get("parsing_success")]
        failed = [log for log in logs if not log.get("parsing_success")]
        success_rate = len(successful) / total if total else 0.0
        error_rate = 1 - success_rate if total else 0.0

        confidences = [
            (log.get("metrics") or {}).get("pattern_match_confidence", 0) or 0
            for log in successful
        ]
        avg_confidence = sum(confidences) / len(confidences) if confidences else 0.0

        error_patterns = self.analyze_error_patterns(failed)
        insights = self.generate_insights(error_rate, error_patterns, total, avg_confidence)

        logger.info(
            "Feedback analysis: %d logs, success rate %.1f%%, %d error patterns",
            total, success_rate * 100, len(error_patterns),
        )

        return {
            "timestamp": datetime.now().isoformat(),
            "metrics": {
                "sample_size": total,
                "success_rate": success_rate,
                "error_rate": error_rate,
                "avg_confidence": avg_confidence,
            },
            "error_patterns": error_patterns,
            "insights": insights,
            "recommendations": self.generate_recommendations(insights),
        }

    def analyze_error_patterns(self, failed_logs: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
        patterns: dict[str, dict[str, Any]] = {}
        for log in failed_logs:
            error_type = self.categorize_error(log.get("errors"))
            pattern = patterns.setdefault(error_type, {"count": 0, "examples": [], "avg_processing_time": 0.0})
            pattern["count"] += 1
            pattern["avg_processing_time"] += (log.get("metrics") or {}).get("processing_time_ms", 0) or 0
            # Keep a few anonymized examples
            if len(pattern["examples"]) < 3:
                pattern["examples"].append(log.get("anonymized_input"))

        for pattern in patterns.values():
            pattern["avg_processing_time"] /= pattern["count"]
        return patterns

    def categorize_error(self, error: Any) -> str:
        if not error:
            return "Unknown Error"
        if isinstance(error, dict):
            message = str(error.get("message", ""))
        else:
            message = str(error)
        message = message.lower()

        if "date" in message:
            return "Date Parsing Error"
        if "time" in message:
            return "Time Parsing Error"
        if "format" in message:
            return "Format Error"
        if "invalid" in message:
            return "Invalid Input"
        return "Other Error"

    def generate_insights(
        self,
        error_rate: float,
        error_patterns: dict[str, dict[str, Any]],
        sample_size: int,
        avg_confidence: float = 1.0,
    ) -> list[dict[str, str]]:
        insights = []

        if sample_size < self.min_sample_size:
            insights.append({
                "type": "warning",
                "message": "Small sample size - results may not be statistically significant",
            })

        if error_rate > self.error_rate_threshold:
            insights.append({
                "type": "critical",
                "message": "High error rate detected",
                "details": f"{error_rate * 100:.1f}% of requests are failing",
            })

        if sample_size and avg_confidence < self.confidence_threshold:
            insights.append({
                "type": "confidence",
                "message": "Low pattern match confidence",
                "details": f"Average confidence {avg_confidence:.2f}",
            })

        for name, info in error_patterns.items():
            if info["count"] > sample_size * 0.1:
                insights.append({
                    "type": "pattern",
                    "message": f"Frequent error pattern: {name}",
                    "details": f"{info['count']} occurrences, avg processing time: {info['avg_processing_time']:.0f}ms",
                })

        return insights

    def generate_recommendations(self, insights: list[dict[str, str]]) -> list[dict[str, str]]:
        recommendations = []
        for insight in insights:
            if insight["type"] == "critical":
                recommendations.append({
                    "priority": "high",
                    "action": "Review and update parsing patterns",
                    "details": "High error rate indicates need for immediate pattern refinement",
                })
            elif insight["type"] in ("pattern", "confidence"):
                recommendations.append({
                    "priority": "medium",
                    "action": "Add new pattern recognition rule",
                    "details": f"Consider adding specific handling for: {insight['message']}",
                })
            elif insight["type"] == "warning":
                recommendations.append({
                    "priority": "low",
                    "action": "Collect more data",
                    "details": "Continue monitoring to establish reliable patterns",
                })
        return recommendations
