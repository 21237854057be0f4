from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mehustaja.config import settings
from mehustaja.middleware.exceptions import register_exception_handlers
from mehustaja.routers import (
    crates,
    customers,
    dashboard,
    events,
    health,
    orders,
    pallets,
    palletizing,
    printer,
    shelves,
)
from mehustaja.services.lifecycle import lifespan

app = FastAPI(
    title="Mehustaja",
    description="Juice processing: intake, crates, pallets, shelves and pickup",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(events.router, tags=["events"])
app.include_router(orders.router, prefix="/api/orders", tags=["orders"])
app.include_router(palletizing.router, prefix="/api", tags=["palletizing"])
app.include_router(crates.router, prefix="/api/crates", tags=["crates"])
app.include_router(pallets.router, prefix="/api/pallets", tags=["pallets"])
app.include_router(shelves.router, prefix="/api/shelves", tags=["shelves"])
app.include_router(customers.router, prefix="/api/customers", tags=["customers"])
app.include_router(printer.router, prefix="/api/printer", tags=["printer"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])
