"""
FastAPI routers grouped by domain.

Each module exposes an APIRouter included by ``kairo.app.create_app``. Routers
only validate input, call services and map service errors to HTTP statuses.
"""
