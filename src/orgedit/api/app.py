"""FastAPI application for the orgedit local JSON API.

Documents travel in the request body; positions are 0-based on both axes,
the way editors address them.
"""

import dataclasses
import secrets
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from .. import __version__
from ..core.document import TextBuffer
from ..core.model import Position
from ..engine import ACTIONS
from ..grammar.links import collect_links


class DocumentRequest(BaseModel):
    text: str
    line: int = 0
    character: int = 0


class EditRequest(DocumentRequest):
    state: str | None = None
    tags: list[str] | None = None
    key: str | None = None
    value: str | None = None
    note: str | None = None
    date: str | None = None


class LinksRequest(BaseModel):
    text: str
    line: int | None = None


def create_app(runtime: Any, token: str | None = None, enable_cors: bool = False) -> FastAPI:
    """
    Create FastAPI application with runtime injected.

    Args:
        runtime: Runtime instance with engine and config
        token: Bearer token for authentication (None to disable auth)
        enable_cors: Enable CORS middleware

    Returns:
        FastAPI application instance
    """
    app = FastAPI(
        title="orgedit API",
        description="Local JSON API for structural editing of outline documents",
        version=__version__,
        docs_url="/docs" if token is None else None,
        redoc_url="/redoc" if token is None else None,
    )

    # Add CORS middleware if enabled
    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Security setup
    if token:
        security_scheme = HTTPBearer(auto_error=False)

        async def verify_token(
            credentials: HTTPAuthorizationCredentials | None = Security(security_scheme),  # noqa: B008
        ) -> None:
            """Verify bearer token."""
            if credentials is None or credentials.credentials != token:
                raise HTTPException(status_code=401, detail="Invalid or missing token")
    else:

        async def verify_token() -> None:
            """No-op when auth is disabled."""
            return None

    def position(req: DocumentRequest) -> Position:
        if req.line < 0 or req.character < 0:
            raise HTTPException(status_code=422, detail="Positions are 0-based and non-negative")
        return Position(req.line, req.character)

    @app.get("/health")  # type: ignore[misc]
    async def health(auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Health check endpoint."""
        return {"status": "ok", "version": __version__}

    @app.post("/context")  # type: ignore[misc]
    async def context(
        req: DocumentRequest, auth: None = Depends(verify_token)
    ) -> dict[str, Any]:
        """Classify the element under the position."""
        doc = TextBuffer(req.text)
        ctx = runtime.engine.analyze(doc, position(req))
        return dataclasses.asdict(ctx)

    @app.post("/edit/{action}")  # type: ignore[misc]
    async def edit(
        action: str, req: EditRequest, auth: None = Depends(verify_token)
    ) -> dict[str, Any]:
        """Run an edit command and return the resulting document."""
        if action not in ACTIONS:
            raise HTTPException(status_code=404, detail=f"Unknown action: {action}")

        doc = TextBuffer(req.text)
        try:
            plan = runtime.engine.run(
                action,
                doc,
                position(req),
                state=req.state,
                tags=req.tags,
                key=req.key,
                value=req.value,
                note=req.note,
                date=req.date,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        applied = runtime.engine.apply(plan, doc)
        return {
            "applied": applied,
            "text": doc.get_text(),
            "edits": [dataclasses.asdict(e) for e in plan.edits],
            "cursor": dataclasses.asdict(plan.cursor) if plan.cursor else None,
            "fold": dataclasses.asdict(plan.fold) if plan.fold else None,
            "fallback": plan.fallback,
            "message": plan.message,
            "value": plan.value,
        }

    @app.post("/links")  # type: ignore[misc]
    async def links(
        req: LinksRequest, auth: None = Depends(verify_token)
    ) -> dict[str, Any]:
        """Links in the document, or on one line, with classified targets."""
        doc = TextBuffer(req.text)
        if req.line is not None and not 0 <= req.line < doc.line_count:
            raise HTTPException(status_code=422, detail=f"Line {req.line} is outside the document")
        lines = [req.line] if req.line is not None else range(doc.line_count)

        results = [
            {
                "line": n,
                **dataclasses.asdict(link),
                "target_info": dataclasses.asdict(target),
                "resolved_line": resolved,
            }
            for n, link, target, resolved in collect_links(
                doc, runtime.config.keywords, lines
            )
        ]
        return {"links": results}

    return app


def generate_token() -> str:
    """Generate a random bearer token."""
    return secrets.token_urlsafe(32)
