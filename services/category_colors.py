# services/category_colors.py

# Muted, professional palette. The last entry ("Other") is the fallback.
CATEGORY_COLORS = [
    {"name": "Food & Dining", "bg_color": "#fffbeb", "text_color": "#b45309", "border_color": "#fde68a"},
    {"name": "Transportation", "bg_color": "#eff6ff", "text_color": "#1d4ed8", "border_color": "#bfdbfe"},
    {"name": "Shopping", "bg_color": "#faf5ff", "text_color": "#7e22ce", "border_color": "#e9d5ff"},
    {"name": "Entertainment", "bg_color": "#fdf2f8", "text_color": "#be185d", "border_color": "#fbcfe8"},
    {"name": "Healthcare", "bg_color": "#f0fdf4", "text_color": "#15803d", "border_color": "#bbf7d0"},
    {"name": "Utilities", "bg_color": "#f8fafc", "text_color": "#334155", "border_color": "#e2e8f0"},
    {"name": "Housing", "bg_color": "#fff7ed", "text_color": "#c2410c", "border_color": "#fed7aa"},
    {"name": "Education", "bg_color": "#eef2ff", "text_color": "#4338ca", "border_color": "#c7d2fe"},
    {"name": "Travel", "bg_color": "#ecfeff", "text_color": "#0e7490", "border_color": "#a5f3fc"},
    {"name": "Other", "bg_color": "#f9fafb", "text_color": "#374151", "border_color": "#e5e7eb"},
]

FALLBACK_CATEGORY = "Other"

_BY_NAME = {entry["name"].lower(): entry for entry in CATEGORY_COLORS}


def color_for(name):
    """
    Return {'name', 'bg_color', 'text_color', 'border_color'} for a category.

    Case-insensitive exact match; anything unknown (including None) gets the
    "Other" colors. Returns a copy so callers can't alter the palette.
    """
    entry = _BY_NAME.get((name or "").lower(), _BY_NAME[FALLBACK_CATEGORY.lower()])
    return dict(entry)


def category_names():
    return [entry["name"] for entry in CATEGORY_COLORS]


def dot_style(name):
    """Inline CSS for the small colored dot shown next to a category name."""
    colors = color_for(name)
    return f"background-color: {colors['text_color']}; border: 1px solid {colors['border_color']};"
