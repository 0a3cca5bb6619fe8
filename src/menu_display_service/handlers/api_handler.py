"""FastAPI application for the admin and public display endpoints."""

import io
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import qrcode
from fastapi import Depends, FastAPI, File, Header, HTTPException, Request, UploadFile, WebSocket
from fastapi.responses import HTMLResponse, JSONResponse, Response, StreamingResponse
from pydantic import BaseModel, Field, field_validator

from menu_display_service.auth.api_dependencies import get_owner_id_from_header
from menu_display_service.auth.session_validator import SessionValidator
from menu_display_service.display.control_channel import surface_key
from menu_display_service.display.renderer import render_display_html
from menu_display_service.models.display_models import DisplayMenu
from menu_display_service.models.menu_models import (
    MenuItemFields,
    MenuSection,
    RestaurantMenu,
    SectionUpdate,
    ThemeUpdate,
    parse_tags,
)
from menu_display_service.services.admin_session import AdminMenuSession, AdminSessionRegistry
from menu_display_service.services.display_service import DisplayService
from menu_display_service.services.exceptions import (
    AuthenticationRequiredError,
    MenuGatewayError,
    MenuNotFoundError,
    MenuServiceError,
    MenuValidationError,
)
from menu_display_service.services.menu_gateway import MenuGateway

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class AdminMenuResponse(BaseModel):
    """The operator's menu together with its public display and preview routes."""

    menu: RestaurantMenu
    display_path: str
    preview_path: str


class SectionCreateRequest(BaseModel):
    title: str


class ItemCreateRequest(BaseModel):
    """Request model for item creation.

    ``price`` accepts any raw input and falls back to 0 when unparseable.
    ``tags`` accepts a list or a comma-separated string.
    """

    name: str
    price: Any = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    is_featured: bool = False
    is_trending: bool = False
    visible: bool = True

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return parse_tags(v)
        return v


class LogoResponse(BaseModel):
    logo_path: str


class FullscreenResponse(BaseModel):
    slug: str
    delivered: int


def _status_for(error: MenuServiceError) -> int:
    if isinstance(error, MenuNotFoundError):
        return 404
    if isinstance(error, MenuValidationError):
        return 422
    if isinstance(error, AuthenticationRequiredError):
        return 401
    return 502


def _qr_png(url: str) -> StreamingResponse:
    img = qrcode.make(url)
    buf = io.BytesIO()
    img.save(buf, "PNG")
    buf.seek(0)
    return StreamingResponse(buf, media_type="image/png")


def create_app(
    admin_registry: AdminSessionRegistry,
    display_service: DisplayService,
    gateway: MenuGateway,
    public_base_url: str = "http://localhost:8001",
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        admin_registry: Per-operator editing sessions
        display_service: Synchronized public display views
        gateway: Gateway used to resolve operator sessions
        public_base_url: Base URL encoded in QR codes

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        logger.info("Stopping display synchronizers")
        await app.state.display_service.shutdown()

    app = FastAPI(
        title="Menu Display Service",
        description="Menu editing API and live public menu displays",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Store services in app state for access in route handlers
    app.state.admin_registry = admin_registry
    app.state.display_service = display_service
    app.state.control_channel = display_service.control_channel
    app.state.session_validator = SessionValidator(gateway)
    app.state.public_base_url = public_base_url.rstrip("/")

    @app.exception_handler(MenuServiceError)
    async def menu_service_error_handler(request: Request, exc: MenuServiceError) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint.

        Returns:
            Health status indicating service is running
        """
        return HealthResponse(status="healthy")

    async def validate_session(authorization: str | None = Header(None)) -> str:
        """Dependency to resolve the operator id."""
        return await get_owner_id_from_header(
            authorization=authorization, validator=app.state.session_validator
        )

    async def get_admin_session(owner_id: str = Depends(validate_session)) -> AdminMenuSession:
        """Dependency returning the operator's loaded editing session."""
        session: AdminMenuSession = await app.state.admin_registry.get_session(owner_id)
        if session.menu is None:
            raise MenuGatewayError(f"Menu could not be loaded: {session.last_error}")
        return session

    def menu_response(session: AdminMenuSession) -> AdminMenuResponse:
        return AdminMenuResponse(
            menu=session.menu,
            display_path=session.display_path,
            preview_path=f"{session.display_path}/page?preview=true",
        )

    def require_success(session: AdminMenuSession, succeeded: bool, operation: str) -> None:
        if not succeeded:
            raise HTTPException(status_code=502, detail=f"Failed to {operation}: {session.last_error}")

    @app.get("/admin/menu", response_model=AdminMenuResponse, tags=["Admin"])
    async def get_admin_menu(session: AdminMenuSession = Depends(get_admin_session)) -> AdminMenuResponse:
        return menu_response(session)

    @app.post("/admin/menu/refresh", response_model=AdminMenuResponse, tags=["Admin"])
    async def refresh_admin_menu(
        session: AdminMenuSession = Depends(get_admin_session),
    ) -> AdminMenuResponse:
        """Re-fetch the operator's menu from the data store."""
        await session.load()
        require_success(session, session.last_error is None, "refresh menu")
        return menu_response(session)

    @app.post("/admin/sections", response_model=MenuSection, status_code=201, tags=["Sections"])
    async def create_section(
        request: SectionCreateRequest,
        session: AdminMenuSession = Depends(get_admin_session),
    ) -> MenuSection:
        """Append a new visible section to the menu."""
        section = await session.add_section(request.title)
        require_success(session, section is not None, "create section")
        return section

    @app.patch("/admin/sections/{section_id}", response_model=AdminMenuResponse, tags=["Sections"])
    async def update_section(
        section_id: str,
        updates: SectionUpdate,
        session: AdminMenuSession = Depends(get_admin_session),
    ) -> AdminMenuResponse:
        require_success(session, await session.update_section(section_id, updates), "update section")
        return menu_response(session)

    @app.delete("/admin/sections/{section_id}", response_model=AdminMenuResponse, tags=["Sections"])
    async def delete_section(
        section_id: str,
        session: AdminMenuSession = Depends(get_admin_session),
    ) -> AdminMenuResponse:
        require_success(session, await session.delete_section(section_id), "delete section")
        return menu_response(session)

    @app.post(
        "/admin/sections/{section_id}/items",
        response_model=AdminMenuResponse,
        status_code=201,
        tags=["Items"],
    )
    async def create_item(
        section_id: str,
        request: ItemCreateRequest,
        session: AdminMenuSession = Depends(get_admin_session),
    ) -> AdminMenuResponse:
        """Create an item in a section.

        Args:
            section_id: The section to add the item to
            request: Item fields

        Returns:
            The re-fetched menu
        """
        succeeded = await session.add_item(
            section_id,
            request.name,
            price=request.price,
            description=request.description,
            tags=request.tags,
            is_featured=request.is_featured,
            is_trending=request.is_trending,
            visible=request.visible,
        )
        require_success(session, succeeded, "create item")
        return menu_response(session)

    @app.patch("/admin/items/{item_id}", response_model=AdminMenuResponse, tags=["Items"])
    async def update_item(
        item_id: str,
        fields: MenuItemFields,
        session: AdminMenuSession = Depends(get_admin_session),
    ) -> AdminMenuResponse:
        require_success(session, await session.update_item(item_id, fields), "update item")
        return menu_response(session)

    @app.delete("/admin/items/{item_id}", response_model=AdminMenuResponse, tags=["Items"])
    async def delete_item(
        item_id: str,
        session: AdminMenuSession = Depends(get_admin_session),
    ) -> AdminMenuResponse:
        require_success(session, await session.delete_item(item_id), "delete item")
        return menu_response(session)

    @app.post("/admin/logo", response_model=LogoResponse, tags=["Branding"])
    async def upload_logo(
        file: UploadFile = File(...),
        session: AdminMenuSession = Depends(get_admin_session),
    ) -> LogoResponse:
        """Upload a logo image and make it the restaurant's logo."""
        content = await file.read()
        logo_path = await session.update_logo(file.filename or "logo", content, file.content_type)
        require_success(session, logo_path is not None, "update logo")
        return LogoResponse(logo_path=logo_path)

    @app.put("/admin/theme", response_model=AdminMenuResponse, tags=["Branding"])
    async def update_theme(
        theme: ThemeUpdate,
        session: AdminMenuSession = Depends(get_admin_session),
    ) -> AdminMenuResponse:
        succeeded = await session.update_theme(theme.mode, theme.brand_background, theme.brand_text)
        require_success(session, succeeded, "update theme")
        return menu_response(session)

    @app.post("/admin/preview/fullscreen", response_model=FullscreenResponse, tags=["Preview"])
    async def request_preview_fullscreen(
        session: AdminMenuSession = Depends(get_admin_session),
    ) -> FullscreenResponse:
        """Ask the admin preview frames of the operator's menu to go fullscreen.

        Public displays showing the same slug are not affected.

        Delivery is fire-and-forget; ``delivered`` only counts the surfaces
        the command was handed to.
        """
        slug = session.menu.slug
        delivered = await app.state.display_service.request_fullscreen(slug)
        return FullscreenResponse(slug=slug, delivered=delivered)

    @app.get("/admin/qr.png", tags=["Preview"])
    async def get_admin_qr(session: AdminMenuSession = Depends(get_admin_session)) -> StreamingResponse:
        return _qr_png(f"{app.state.public_base_url}{session.display_path}/page")

    @app.delete("/admin/session", status_code=204, tags=["Admin"])
    async def end_admin_session(owner_id: str = Depends(validate_session)) -> Response:
        if not app.state.admin_registry.end_session(owner_id):
            raise HTTPException(status_code=404, detail="No open editing session")
        return Response(status_code=204)

    @app.get("/display/{slug}", response_model=DisplayMenu, tags=["Display"])
    async def get_display(slug: str) -> DisplayMenu:
        """Get the render-ready public menu for a slug.

        Raises:
            MenuNotFoundError: If no restaurant uses the slug (404)
            MenuGatewayError: If no snapshot could be fetched yet (502)
        """
        return await app.state.display_service.get_view(slug)

    @app.get("/display/{slug}/page", response_class=HTMLResponse, tags=["Display"])
    async def get_display_page(slug: str, request: Request, preview: bool = False) -> HTMLResponse:
        """Serve the kiosk page for a slug.

        ``preview=true`` is used by the admin preview frame; its control
        socket joins the preview group that admin fullscreen requests target.
        """
        view = await app.state.display_service.get_view(slug)
        control = request.url_for("display_control", slug=slug)
        if preview:
            control = control.include_query_params(preview="true")
        control_url = str(control)
        control_url = control_url.replace("https://", "wss://", 1).replace("http://", "ws://", 1)
        return HTMLResponse(render_display_html(view, control_url=control_url))

    @app.get("/display/{slug}/qr.png", tags=["Display"])
    async def get_display_qr(slug: str) -> StreamingResponse:
        await app.state.display_service.get_synchronizer(slug)
        return _qr_png(f"{app.state.public_base_url}/display/{slug}/page")

    @app.websocket("/display/{slug}/control", name="display_control")
    async def display_control(websocket: WebSocket, slug: str, preview: bool = False) -> None:
        display_service: DisplayService = app.state.display_service
        display_service.add_viewer(slug)
        try:
            await app.state.control_channel.serve(websocket, surface_key(slug, preview=preview))
        finally:
            display_service.remove_viewer(slug)

    return app
