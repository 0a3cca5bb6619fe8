"""Read-only rendering of a menu snapshot for the public display."""

from html import escape

from menu_display_service.display.kiosk import KioskSettings, render_kiosk_script
from menu_display_service.models.display_models import (
    DisplayItem,
    DisplayMenu,
    DisplaySection,
    ThemeStyle,
)
from menu_display_service.models.menu_models import (
    DEFAULT_BRAND_BACKGROUND,
    DEFAULT_BRAND_TEXT,
    RestaurantMenu,
    ThemeMode,
    format_price,
)

DARK_PALETTE = ("#111827", "#ffffff")
LIGHT_PALETTE = ("#ffffff", "#111827")

FEATURED_MARK = "★"
TRENDING_MARK = "\U0001f525"


def compute_theme_style(
    mode: ThemeMode,
    brand_background: str | None = None,
    brand_text: str | None = None,
) -> ThemeStyle:
    """Resolve a theme to the style of one root node.

    Dark and light use fixed palettes. Brand uses the operator's colours,
    falling back to white on black text when one is missing.
    """
    if mode is ThemeMode.DARK:
        background, text = DARK_PALETTE
    elif mode is ThemeMode.BRAND:
        background = brand_background or DEFAULT_BRAND_BACKGROUND
        text = brand_text or DEFAULT_BRAND_TEXT
    else:
        background, text = LIGHT_PALETTE

    return ThemeStyle(class_name=mode.value, background_color=background, text_color=text)


def build_display_menu(menu: RestaurantMenu) -> DisplayMenu:
    """Produce the render-ready view of a snapshot.

    Hidden sections are dropped together with all of their items, hidden
    items are dropped from visible sections, sections are ordered by
    position (stable, so ties keep source order) and items keep snapshot
    order.
    """
    visible_sections = sorted(
        (section for section in menu.menu_sections if section.visible),
        key=lambda section: section.position,
    )

    sections = [
        DisplaySection(
            id=section.id,
            title=section.title,
            position=section.position,
            items=[
                DisplayItem(
                    id=item.id,
                    name=item.name,
                    price=format_price(item.price),
                    description=item.description,
                    tags=item.tags,
                    is_featured=item.is_featured,
                    is_trending=item.is_trending,
                )
                for item in section.menu_items
                if item.visible
            ],
        )
        for section in visible_sections
    ]

    return DisplayMenu(
        restaurant_id=menu.id,
        name=menu.name,
        slug=menu.slug,
        logo_path=menu.logo_path,
        mode=menu.mode,
        style=compute_theme_style(menu.mode, menu.brand_background, menu.brand_text),
        sections=sections,
    )


def _render_item(item: DisplayItem) -> str:
    marks = ""
    if item.is_featured:
        marks += f'<span class="mark featured">{FEATURED_MARK}</span>'
    if item.is_trending:
        marks += f'<span class="mark trending">{TRENDING_MARK}</span>'
    description = f'<p class="description">{escape(item.description)}</p>' if item.description else ""
    return (
        '<li class="item">'
        f'<span class="name">{escape(item.name)} {marks}</span>'
        f'<span class="price">${item.price}</span>'
        f"{description}"
        "</li>"
    )


def render_display_html(
    display: DisplayMenu,
    control_url: str | None = None,
    kiosk: KioskSettings | None = None,
) -> str:
    """Render the public display page.

    The theme is applied to the root element only. The page carries the
    kiosk script; when ``control_url`` is given it also listens there for
    fullscreen and refresh commands.
    """
    style = display.style
    logo = (
        f'<img class="logo" src="{escape(display.logo_path, quote=True)}" alt="logo">'
        if display.logo_path
        else ""
    )
    sections = "".join(
        f'<section class="menu-section"><h2>{escape(section.title)}</h2>'
        f'<ul>{"".join(_render_item(item) for item in section.items)}</ul></section>'
        for section in display.sections
    )
    script = render_kiosk_script(control_url, kiosk)

    return (
        "<!DOCTYPE html>"
        f'<html lang="en"><head><meta charset="utf-8"><title>{escape(display.name)}</title></head>'
        f'<body><main id="menu-root" class="theme-{style.class_name}" '
        f'style="background-color: {escape(style.background_color, quote=True)}; '
        f'color: {escape(style.text_color, quote=True)}; min-height: 100vh;">'
        f'<header>{logo}<h1>{escape(display.name)}</h1></header>'
        f"{sections}"
        f"</main>{script}</body></html>"
    )
