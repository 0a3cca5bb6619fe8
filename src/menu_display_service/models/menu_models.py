"""Menu data models.

These models represent the restaurant → sections → items shape returned by the
composite menu read. Every component that holds a menu snapshot builds it
through ``normalize_menu`` so that admin and display views agree on types.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator

DEFAULT_BRAND_BACKGROUND = "#ffffff"
DEFAULT_BRAND_TEXT = "#000000"

_DEFAULT_COLORS = {
    "brand_background": DEFAULT_BRAND_BACKGROUND,
    "brand_text": DEFAULT_BRAND_TEXT,
}

_TWO_PLACES = Decimal("0.01")


class ThemeMode(str, Enum):
    """Enumeration of display theme modes."""

    LIGHT = "light"
    DARK = "dark"
    BRAND = "brand"


def _coerce_mode(value: Any) -> ThemeMode:
    try:
        return ThemeMode(value)
    except ValueError:
        return ThemeMode.LIGHT


def parse_price(raw: Any) -> Decimal:
    """Parse a price entered by an operator.

    Unparseable input falls back to 0 rather than failing.

    Args:
        raw: Price as typed (string, number or None)

    Returns:
        Decimal price, Decimal("0") if the input is not a finite number
    """
    if raw is None or isinstance(raw, bool):
        return Decimal("0")

    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")

    if not value.is_finite():
        return Decimal("0")
    return value


def format_price(value: Any) -> str:
    """Format a price with exactly two fraction digits, rounding half up.

    The working precision grows with the magnitude of the price so that very
    large values still quantize instead of raising ``InvalidOperation``.
    """
    price = parse_price(value)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, price.adjusted() + 4)
        return str(price.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def parse_tags(raw: str) -> list[str]:
    """Split a comma separated tag string, trimming each entry.

    Empty entries (e.g. from "a,,b") are kept as empty strings.
    """
    return [tag.strip() for tag in raw.split(",")]


def join_tags(tags: list[str]) -> str:
    """Join tags back into the comma separated edit form."""
    return ",".join(tags)


class MenuItem(BaseModel):
    """Menu item model."""

    id: str = Field(..., description="Unique identifier for the menu item")
    section_id: str | None = Field(None, description="Section this item belongs to")
    name: str = Field(..., description="Item name")
    price: Decimal = Field(default=Decimal("0"), description="Item price", ge=0)
    description: str | None = Field(None, description="Item description")
    tags: list[str] = Field(default_factory=list, description="Free-text tags in display order")
    is_featured: bool = Field(default=False, description="Highlighted as featured")
    is_trending: bool = Field(default=False, description="Highlighted as trending")
    visible: bool = Field(default=True, description="Shown on the public display")

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> Decimal:
        """Coerce stored prices (numeric or string) to Decimal."""
        return parse_price(v)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v: Any) -> list[str]:
        """Treat a null tag column as an empty list."""
        return [] if v is None else v


class MenuSection(BaseModel):
    """Menu section model."""

    id: str = Field(..., description="Unique identifier for the section")
    restaurant_id: str | None = Field(None, description="Restaurant this section belongs to")
    title: str = Field(..., description="Section title")
    position: int = Field(default=0, description="Display order, ascending")
    visible: bool = Field(default=True, description="Shown on the public display")
    menu_items: list[MenuItem] = Field(default_factory=list, description="Items in source order")


class RestaurantMenu(BaseModel):
    """Full menu snapshot for one restaurant."""

    id: str = Field(..., description="Unique identifier for the restaurant")
    name: str = Field(..., description="Restaurant name")
    slug: str = Field(..., description="Public routing identifier")
    logo_path: str | None = Field(None, description="Public URL of the logo")
    theme: Any = Field(None, description="Legacy free-form theme column")
    mode: ThemeMode = Field(default=ThemeMode.LIGHT, description="Display theme mode")
    brand_background: str = Field(default=DEFAULT_BRAND_BACKGROUND)
    brand_text: str = Field(default=DEFAULT_BRAND_TEXT)
    menu_sections: list[MenuSection] = Field(default_factory=list)

    @field_validator("mode", mode="before")
    @classmethod
    def coerce_mode(cls, v: Any) -> ThemeMode:
        """Fall back to light for null or unknown modes."""
        return _coerce_mode(v)

    @field_validator("brand_background", "brand_text", mode="before")
    @classmethod
    def default_colors(cls, v: Any, info: ValidationInfo) -> str:
        """Fill null brand colours with the defaults."""
        return v or _DEFAULT_COLORS[info.field_name]

    def find_section(self, section_id: str) -> MenuSection | None:
        """Return the section with the given id, if present."""
        for section in self.menu_sections:
            if section.id == section_id:
                return section
        return None


class SectionUpdate(BaseModel):
    """Partial update for a section. Unset fields are left untouched."""

    title: str | None = None
    position: int | None = None
    visible: bool | None = None

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class MenuItemFields(BaseModel):
    """Partial field set for creating or updating a menu item.

    Price and tags accept the same loose input as item creation: an
    unparseable price becomes 0 and a tag string is split on commas.
    """

    name: str | None = None
    price: Decimal | None = None
    description: str | None = None
    tags: list[str] | None = None
    is_featured: bool | None = None
    is_trending: bool | None = None
    visible: bool | None = None

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> Decimal | None:
        return None if v is None else parse_price(v)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v: Any) -> Any:
        return parse_tags(v) if isinstance(v, str) else v

    def to_record(self) -> dict[str, Any]:
        """Convert to a JSON-safe row payload.

        Returns:
            dict: Only the fields that were set, with price as a float
        """
        record = self.model_dump(exclude_none=True)
        if "price" in record:
            record["price"] = float(record["price"])
        return record


class ThemeUpdate(BaseModel):
    """Theme change for a restaurant."""

    mode: ThemeMode
    brand_background: str | None = None
    brand_text: str | None = None

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {"mode": self.mode.value}
        if self.brand_background is not None:
            record["brand_background"] = self.brand_background
        if self.brand_text is not None:
            record["brand_text"] = self.brand_text
        return record


class RestaurantSettings(BaseModel):
    """Restaurant columns returned by logo and theme updates."""

    id: str
    logo_path: str | None = None
    mode: ThemeMode = ThemeMode.LIGHT
    brand_background: str = DEFAULT_BRAND_BACKGROUND
    brand_text: str = DEFAULT_BRAND_TEXT

    @field_validator("mode", mode="before")
    @classmethod
    def coerce_mode(cls, v: Any) -> ThemeMode:
        return _coerce_mode(v)

    @field_validator("brand_background", "brand_text", mode="before")
    @classmethod
    def default_colors(cls, v: Any, info: ValidationInfo) -> str:
        return v or _DEFAULT_COLORS[info.field_name]


def normalize_menu(raw: dict[str, Any]) -> RestaurantMenu:
    """Build a menu snapshot from a raw composite read row.

    Missing nested lists become empty lists and every section and item is
    stamped with the id of its parent, so a section's ``menu_items`` only ever
    holds items whose ``section_id`` matches that section.

    Args:
        raw: One ``restaurants`` row with embedded ``menu_sections`` and
            ``menu_items``

    Returns:
        RestaurantMenu: Normalized snapshot
    """
    restaurant_id = raw.get("id")
    sections = []
    for raw_section in raw.get("menu_sections") or []:
        section_id = raw_section.get("id")
        items = [
            {**raw_item, "section_id": section_id, "description": raw_item.get("description")}
            for raw_item in raw_section.get("menu_items") or []
        ]
        sections.append({**raw_section, "restaurant_id": restaurant_id, "menu_items": items})

    return RestaurantMenu(**{**raw, "menu_sections": sections})
