# routes.py
from fastapi import FastAPI
from controller.data_controller import data_router
from controller.project_controller import project_router


def register_routes(app: FastAPI) -> None:
    """Register & Access control controllers here."""
    app.include_router(data_router)
    app.include_router(project_router)
