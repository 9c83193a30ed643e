from __future__ import annotations

from typing import Any, Dict, List


# Each factor draws its weight from its own range, so some categories are
# structurally louder than others.
FACTOR_CATALOG: List[Dict[str, Any]] = [
    {
        "id": "mood_volatility",
        "category": "Mood",
        "label": "Recent mood swings",
        "weight_range": (0.15, 0.30),
        "description": "Significant mood oscillation over the last 3 days",
        "suggestion": "Note possible triggers right after logging your mood",
    },
    {
        "id": "negative_language",
        "category": "Writing",
        "label": "Negative language in journal",
        "weight_range": (0.10, 0.25),
        "description": "More self-critical terms than usual",
        "suggestion": "Try a cognitive reframing exercise",
    },
    {
        "id": "reduced_entries",
        "category": "Behavior",
        "label": "Fewer check-ins",
        "weight_range": (0.05, 0.20),
        "description": "Fewer entries compared with the previous week",
        "suggestion": "Set a gentle daily reminder",
    },
    {
        "id": "late_night_usage",
        "category": "Routine",
        "label": "Late-night usage",
        "weight_range": (0.05, 0.15),
        "description": "More sessions after midnight",
        "suggestion": "Practice guided breathing before bed",
    },
]


INTERVENTION_CATALOG: List[Dict[str, Any]] = [
    {
        "id": "breathing_box",
        "title": "Box breathing 4x4",
        "emoji": "🫁",
        "benefit": "Lowers physiological arousal and mild anxiety",
        "estimated_minutes": 3,
        "type": "breathing",
    },
    {
        "id": "cognitive_reframe",
        "title": "Cognitive reframe",
        "emoji": "🧠",
        "benefit": "Challenge a recent self-critical thought",
        "estimated_minutes": 5,
        "type": "reframe",
    },
    {
        "id": "gratitude_mini",
        "title": "Mini gratitude",
        "emoji": "🙏",
        "benefit": "Shift attention toward positive moments",
        "estimated_minutes": 2,
        "type": "journal",
    },
    {
        "id": "body_scan",
        "title": "Short body scan",
        "emoji": "🧘",
        "benefit": "Notice tension and let it go without judgment",
        "estimated_minutes": 4,
        "type": "mindfulness",
    },
]
