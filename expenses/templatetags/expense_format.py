from django import template

from services.category_colors import color_for, dot_style
from services.formatting import format_currency, format_date

register = template.Library()


@register.filter
def currency(value):
    """{{ expense.amount|currency }} -> $1,234.50"""
    return format_currency(value)


@register.filter
def short_date(value):
    """{{ expense.date|short_date }} -> Jan 15, 2024"""
    return format_date(value)


@register.filter
def badge_style(category):
    colors = color_for(category)
    return (f"background-color: {colors['bg_color']}; color: {colors['text_color']}; "
            f"border: 1px solid {colors['border_color']};")


@register.filter
def category_dot(category):
    return dot_style(category)
