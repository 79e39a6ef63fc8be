"""Admin FastAPI application."""

from fastapi import FastAPI
from sqladmin import Admin

from showtally.admin.auth import AdminAuth
from showtally.admin.views import ShowtimeAdmin, ShowtimeSummaryAdmin, SummaryToolsView
from showtally.config import settings
from showtally.database import engine


def create_admin_app() -> FastAPI:
    app = FastAPI(title="Showtally Admin")
    auth = AdminAuth(secret_key=settings.admin_secret_key)
    admin = Admin(app, engine, authentication_backend=auth, title="Showtally Admin")
    for view in [ShowtimeAdmin, ShowtimeSummaryAdmin, SummaryToolsView]:
        admin.add_view(view)
    return app


admin_app = create_admin_app()
