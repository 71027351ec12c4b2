"""promptshare - FastAPI Application.

This module is the single entry point for the web application.  It defines
the application factory, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
- **Gallery state** lives in a :class:`~promptshare.gallery.service.GalleryService`
  created by the lifespan handler and stored on ``app.state.gallery``.  The
  service owns the in-process cache, so the cache lives and dies with the app.
- **Reads** never fail: when every store is down the listing is empty.
- **Errors** raised by the gallery (:class:`~promptshare.core.errors.GalleryError`)
  are turned into ``{"success": false, "error": ...}`` with the error's status
  code by a single exception handler.
- **Identity** is resolved upstream; routes take the user id as a plain string.

Endpoints
---------
========  ================================  ====================================
Method    Path                              Purpose
========  ================================  ====================================
GET       ``/health``                       Liveness probe
GET       ``/api/community``                Public gallery listing
GET       ``/api/community/{id}``           Single shared image
DELETE    ``/api/community/{id}``           Delete a shared image (owner only)
POST      ``/api/share``                    Share a generated image
POST      ``/api/likes``                    Toggle a like
GET       ``/api/likes/check``              Whether a user liked an image
POST      ``/api/comments``                 Add a comment
DELETE    ``/api/comments/{comment_id}``    Delete a comment (author or owner)
GET       ``/api/check-shared``             Whether a generation was shared
POST      ``/api/categories/classify``      Category preview for a prompt
POST      ``/api/categories/reclassify``    Recompute stored categories
========  ================================  ====================================

Usage
-----
CLI (installed entry point)::

    promptshare

Direct invocation::

    python -m promptshare.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from promptshare import __version__
from promptshare.api.models import (
    ClassifyRequest,
    CommentRequest,
    LikeRequest,
    ReclassifyRequest,
    ShareRequest,
)
from promptshare.core.config import GalleryConfig, config
from promptshare.core.errors import GalleryError
from promptshare.gallery.service import GalleryService, build_gallery_service

logger = logging.getLogger(__name__)


def get_gallery(request: Request) -> GalleryService:
    """Return the gallery service stored on the application by the lifespan."""
    return request.app.state.gallery


def create_app(settings: GalleryConfig | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration to use; the global :data:`config` when omitted.

    Returns:
        Configured :class:`FastAPI` instance.  The gallery service is only
        created when the application starts.
    """
    settings = settings or config

    # -----------------------------------------------------------------------
    # Application lifecycle: gallery service setup and teardown.
    # -----------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Create the gallery service on startup and close it on shutdown.

        On shutdown the primary store's connection pool is disposed and the
        cache is cleared.
        """
        # --- Startup -------------------------------------------------------
        gallery = build_gallery_service(settings)
        await gallery.start()
        app.state.gallery = gallery

        yield  # Application runs here.

        # --- Shutdown ------------------------------------------------------
        await gallery.close()

    app = FastAPI(
        title="promptshare",
        description="Community gallery API for shared prompt-to-image artifacts.",
        version=__version__,
        lifespan=lifespan,
    )

    # Allow cross-origin requests so the frontend can be served from a
    # different origin.  In production, restrict ``allow_origins``.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GalleryError)
    async def gallery_error_handler(request: Request, exc: GalleryError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.message},
        )

    # -----------------------------------------------------------------------
    # Routes.
    # -----------------------------------------------------------------------

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "version": __version__}

    @app.get("/api/community")
    async def list_community(
        force_refresh: bool = False,
        t: str | None = Query(default=None, description="Cache-busting marker; forces a refresh."),
        gallery: GalleryService = Depends(get_gallery),
    ) -> dict:
        """Return the public gallery, newest first.

        Any ``t`` value (the frontend sends a timestamp) behaves like
        ``force_refresh=true``.

        Returns:
            Dictionary with ``success``, ``images``, ``count``, ``source``
            (``cache`` or ``fresh``) and ``tier``.
        """
        result = await gallery.list_artifacts(force_refresh=force_refresh or t is not None)
        return {
            "success": True,
            "images": [artifact.model_dump(mode="json") for artifact in result.artifacts],
            "count": len(result.artifacts),
            "source": result.source,
            "tier": result.tier,
        }

    @app.get("/api/community/{image_id}")
    async def get_community_image(
        image_id: str, gallery: GalleryService = Depends(get_gallery)
    ) -> dict:
        artifact = await gallery.get_artifact(image_id)
        return {"success": True, "image": artifact.model_dump(mode="json")}

    @app.delete("/api/community/{image_id}")
    async def delete_community_image(
        image_id: str,
        user_id: str = Query(..., min_length=1),
        gallery: GalleryService = Depends(get_gallery),
    ) -> dict:
        """Delete a shared image from every store.

        Raises:
            PermissionDeniedError: 403 if *user_id* is not the owner.
            ArtifactNotFoundError: 404 if no store holds the image.
        """
        await gallery.delete_artifact(image_id, user_id)
        return {"success": True, "deleted": image_id}

    @app.post("/api/share")
    async def share_image(req: ShareRequest, gallery: GalleryService = Depends(get_gallery)) -> dict:
        """Publish a generated image to the community gallery.

        Args:
            req: Validated :class:`ShareRequest` payload.

        Returns:
            Dictionary with ``success`` and the stored ``image``, including
            its assigned category.
        """
        artifact = await gallery.share(req.to_draft())
        return {"success": True, "image": artifact.model_dump(mode="json")}

    @app.post("/api/likes")
    async def toggle_like(req: LikeRequest, gallery: GalleryService = Depends(get_gallery)) -> dict:
        liked, likes = await gallery.toggle_like(req.image_id, req.user_id)
        return {"success": True, "liked": liked, "likes": likes}

    @app.get("/api/likes/check")
    async def check_like(
        image_id: str = Query(..., min_length=1),
        user_id: str = Query(..., min_length=1),
        gallery: GalleryService = Depends(get_gallery),
    ) -> dict:
        return {"success": True, "liked": await gallery.is_liked(image_id, user_id)}

    @app.post("/api/comments")
    async def add_comment(req: CommentRequest, gallery: GalleryService = Depends(get_gallery)) -> dict:
        comment = await gallery.add_comment(req.image_id, req.user_id, req.text, req.user_name)
        return {"success": True, "comment": comment.model_dump(mode="json")}

    @app.delete("/api/comments/{comment_id}")
    async def delete_comment(
        comment_id: str,
        image_id: str = Query(..., min_length=1),
        user_id: str = Query(..., min_length=1),
        gallery: GalleryService = Depends(get_gallery),
    ) -> dict:
        await gallery.delete_comment(image_id, comment_id, user_id)
        return {"success": True, "deleted": comment_id}

    @app.get("/api/check-shared")
    async def check_shared(
        source_id: str = Query(..., min_length=1),
        gallery: GalleryService = Depends(get_gallery),
    ) -> dict:
        return {"success": True, "shared": await gallery.check_shared(source_id)}

    @app.post("/api/categories/classify")
    async def classify_prompt(
        req: ClassifyRequest, gallery: GalleryService = Depends(get_gallery)
    ) -> dict:
        """Suggest a category while an image is being generated."""
        return {"success": True, "category": gallery.classify_preview(req.prompt, req.rendering_style)}

    @app.post("/api/categories/reclassify")
    async def reclassify_images(
        req: ReclassifyRequest, gallery: GalleryService = Depends(get_gallery)
    ) -> dict:
        """Run stored images through the category scorer again.

        Returns:
            Dictionary with ``success``, ``count`` and one ``results`` entry
            per image whose category changed.
        """
        changes = await gallery.reclassify(req.image_ids)
        return {
            "success": True,
            "count": len(changes),
            "results": [
                {
                    "id": change.image_id,
                    "old_category": change.old_category,
                    "new_category": change.new_category,
                    "store": change.store,
                }
                for change in changes
            ],
        }

    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~promptshare.core.config.config`
    (``PROMPTSHARE_SERVER_HOST``, ``PROMPTSHARE_SERVER_PORT`` and
    ``PROMPTSHARE_LOG_LEVEL``).  Defaults to ``0.0.0.0:8000``.

    This function is registered as the ``promptshare`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "promptshare.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
