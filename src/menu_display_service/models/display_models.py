"""Render-ready display models.

These are the output of the display renderer: already filtered, sorted and
formatted, so a template or client only has to lay them out.
"""

from pydantic import BaseModel, Field

from menu_display_service.models.menu_models import ThemeMode


class ThemeStyle(BaseModel):
    """Style applied to the root node of a rendered menu."""

    class_name: str = Field(..., description="Theme class for the root node")
    background_color: str = Field(..., description="CSS background colour")
    text_color: str = Field(..., description="CSS foreground colour")


class DisplayItem(BaseModel):
    """Visible menu item as shown on the display."""

    id: str
    name: str
    price: str = Field(..., description="Price formatted with two fraction digits")
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    is_featured: bool = False
    is_trending: bool = False


class DisplaySection(BaseModel):
    """Visible section with its visible items."""

    id: str
    title: str
    position: int
    items: list[DisplayItem] = Field(default_factory=list)


class DisplayMenu(BaseModel):
    """Complete render-ready menu for one restaurant."""

    restaurant_id: str
    name: str
    slug: str
    logo_path: str | None = None
    mode: ThemeMode
    style: ThemeStyle
    sections: list[DisplaySection] = Field(default_factory=list)
