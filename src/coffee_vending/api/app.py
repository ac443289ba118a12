"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from coffee_vending.api.catalog import router as catalog_router
from coffee_vending.api.machines import router as machines_router
from coffee_vending.api.orders import router as orders_router
from coffee_vending.api.payments import router as payments_router
from coffee_vending.app_logging import configure_logging
from coffee_vending.containers import AppContainer
from coffee_vending.domain.errors import VendingError
from coffee_vending.services.realtime import ERROR


def create_app(container: AppContainer, start_background: bool = True) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        if start_background:
            await state_container.start_background()
        yield
        if start_background:
            await state_container.stop_background()
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(catalog_router)
    app.include_router(machines_router)
    app.include_router(orders_router)
    app.include_router(payments_router)

    @app.exception_handler(VendingError)
    async def vending_error_handler(
        request: Request, exc: VendingError
    ) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("Request failed: %s", exc, extra={"path": request.url.path})
        return JSONResponse(
            status_code=exc.http_status, content={"success": False, **exc.to_dict()}
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.websocket("/ws")
    async def realtime(websocket: WebSocket) -> None:
        """Room-scoped realtime channel for kiosks and dashboards."""
        state_container: AppContainer = websocket.app.state.container
        hub = state_container.hub
        await websocket.accept()
        connection_id = hub.register(websocket)
        try:
            while True:
                message = await websocket.receive_json()
                if not isinstance(message, dict):
                    await hub.emit_to(
                        connection_id, ERROR, {"message": "Invalid message"}
                    )
                    continue
                await state_container.room_handler.handle_message(
                    connection_id, message
                )
        except WebSocketDisconnect:
            logger.info("Connection closed", extra={"connection_id": connection_id})
        finally:
            hub.unregister(connection_id)

    return app
