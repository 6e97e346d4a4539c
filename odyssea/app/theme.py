"""
Odyssea Theme - Light and dark palettes.

Color Philosophy:
- Emerald green is the brand accent in both modes
- Light mode uses white surfaces with dark green text
- Dark mode uses near-black green surfaces with mint text
"""

from __future__ import annotations

from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict

ThemeMode = Literal["light", "dark"]

# =============================================================================
# SHARED METRICS
# =============================================================================
RADIUS: Dict[str, int] = {"xs": 4, "sm": 8, "md": 12, "lg": 16, "xl": 24, "full": 999}
SPACING: Dict[str, int] = {"xs": 4, "sm": 8, "md": 12, "lg": 16, "xl": 24}

SHADOW_SOFT: Dict[str, Any] = {
    "shadow_color": "#000000",
    "offset_x": 0,
    "offset_y": 4,
    "opacity": 0.12,
    "radius": 8,
    "elevation": 6,
}

# =============================================================================
# LIGHT PALETTE
# =============================================================================
LIGHT_COLORS: Dict[str, str] = {
    "primary": "#10B981",          # Emerald
    "primary_soft": "#D1FAE5",
    "background": "#FFFFFF",
    "background_alt": "#FFFFFF",
    "card": "#FFFFFF",
    "card_soft": "#ECFDF5",        # Highlighted cards
    "border": "#D1D5DB",
    "text": "#065F46",             # Main text, dark green
    "text_soft": "#047857",
    "text_muted": "#6B7280",
    "danger": "#EF4444",
    "success": "#10B981",
    "overlay": "rgba(6, 95, 70, 0.6)",
}

# =============================================================================
# DARK PALETTE
# =============================================================================
DARK_COLORS: Dict[str, str] = {
    "primary": "#34D399",          # Mint
    "primary_soft": "#064E3B",
    "background": "#022C22",       # Near-black green
    "background_alt": "#0F172A",
    "card": "#064E3B",
    "card_soft": "#065F46",
    "border": "#1F2937",
    "text": "#ECFDF5",
    "text_soft": "#A7F3D0",
    "text_muted": "#9CA3AF",
    "danger": "#F87171",
    "success": "#34D399",
    "overlay": "rgba(2, 44, 34, 0.85)",
}


class Theme(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: ThemeMode
    colors: Dict[str, str]
    radius: Dict[str, int] = RADIUS
    spacing: Dict[str, int] = SPACING
    shadow: Dict[str, Any] = SHADOW_SOFT


LIGHT_THEME = Theme(mode="light", colors=LIGHT_COLORS)
DARK_THEME = Theme(mode="dark", colors=DARK_COLORS)


def theme_for(mode: ThemeMode) -> Theme:
    return DARK_THEME if mode == "dark" else LIGHT_THEME
