import logging

from fastapi import FastAPI

from oee_app.config import configure_logging, load_settings
from oee_app.db import build_engine, build_session_factory, load_db_config
from oee_app.deps import get_session, init_dependencies
from oee_app.models import Base
from oee_app.routes import admin as admin_routes
from oee_app.routes import catalog as catalog_routes
from oee_app.routes import events as events_routes
from oee_app.routes import inventory as inventory_routes
from oee_app.routes import oee as oee_routes
from oee_app.routes import orders as orders_routes
from oee_app.routes import shifts as shifts_routes

__all__ = ["app", "get_session"]

# --- Settings and logging ---
_settings = load_settings()
configure_logging(_settings.log_level)
logger = logging.getLogger(__name__)

# --- DB setup ---
_config = load_db_config()
_engine = build_engine(_config)
_session_factory = build_session_factory(_engine)
Base.metadata.create_all(bind=_engine)
init_dependencies(_session_factory, _settings)

# --- FastAPI app ---
app = FastAPI(title="OEE Tracking API")

app.include_router(admin_routes.router)
app.include_router(catalog_routes.router)
app.include_router(orders_routes.router)
app.include_router(shifts_routes.router)
app.include_router(inventory_routes.router)
app.include_router(events_routes.router)
app.include_router(oee_routes.router)

logger.info("OEE API ready on %s", _engine.url.render_as_string(hide_password=True))


@app.get("/health")
def health():
    return {"status": "ok"}
