"""
Main server app.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..settings import settings
from .tiles import tiles_router

tags_metadata = [
    {
        "name": "Tiles",
        "description": "Operations to upload, list and delete tiles, and to retrieve tile images.",
    },
]


def create_app(repository=None, cache=None) -> FastAPI:
    """
    Create the app. A repository and cache not given here are built from
    the settings when the app starts.
    """

    async def lifespan(app: FastAPI):
        """
        Lifespan event handler for the FastAPI app.
        """

        settings.setup_app(app=app)

        yield

    app = FastAPI(lifespan=lifespan, openapi_tags=tags_metadata)

    if repository is not None:
        app.repository = repository

    if cache is not None:
        app.cache = cache

    if settings.add_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(tiles_router)

    return app


app = create_app()
