"""
Grape disease classes known to the inference model.

Maps free-text labels returned by the model onto catalog entries with a
severity and a display color (hex, used for overlays).
"""

from dataclasses import dataclass

HEALTHY = "Healthy"
DEFAULT_COLOR = "#6b7280"


@dataclass(frozen=True)
class DiseaseInfo:
    class_id: int
    name: str
    severity: str
    color: str = DEFAULT_COLOR

    @property
    def is_healthy(self) -> bool:
        return self.severity == "None"


DISEASE_CATALOG: dict[int, DiseaseInfo] = {
    1: DiseaseInfo(1, "Karpa (Anthracnose)", "High", "#dc2626"),
    2: DiseaseInfo(2, "Bhuri (Powdery Mildew)", "Medium", "#f59e0b"),
    3: DiseaseInfo(3, "Bokadlela (Borer Infestation)", "High", "#ef4444"),
    4: DiseaseInfo(4, "Davnya (Downy Mildew)", "High", "#8b5cf6"),
    5: DiseaseInfo(5, HEALTHY, "None", "#10b981"),
}


def match_label(label: str | None) -> DiseaseInfo:
    """
    Finds the catalog entry whose name occurs in the label (case-insensitive).

    Unknown labels keep their text and get severity "Unknown".
    """
    text = (label or "").strip()
    lowered = text.lower()
    if lowered:
        for info in DISEASE_CATALOG.values():
            if info.name.lower() in lowered:
                return info
    return DiseaseInfo(0, text or "Unknown", "Unknown")


def color_for(name: str) -> str:
    for info in DISEASE_CATALOG.values():
        if info.name == name:
            return info.color
    return DEFAULT_COLOR


def hex_to_bgr(color: str) -> tuple[int, int, int]:
    """'#rrggbb' -> (b, g, r) as used by OpenCV."""
    value = color.lstrip("#")
    r, g, b = (int(value[i : i + 2], 16) for i in (0, 2, 4))
    return b, g, r
