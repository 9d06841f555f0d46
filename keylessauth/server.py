"""FastAPI-powered credential registry service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from . import auth
from .config import configure_logging, load_settings
from .errors import (
    DuplicateCredentialError,
    InvalidInputError,
    LeafNotFoundError,
    RegistrationNotFinalizedError,
)
from .registry import CredentialRegistry
from .verifier import verify

logger = logging.getLogger(__name__)


class CredentialRequest(BaseModel):
    credential: str


class BatchRegisterRequest(BaseModel):
    credentials: List[str]


class RegisterResponse(BaseModel):
    leaf: str
    root: str
    sequence: int


class BatchRegisterResponse(BaseModel):
    leaves: List[str]
    root: str
    sequence: int


class RootResponse(BaseModel):
    root: str
    leaf_count: int
    sequence: int
    anchored_at: float
    state: Optional[str] = None


class ProofResponse(BaseModel):
    leaf: str
    root: str
    proof: List[Dict[str, Any]]


class AuthenticateRequest(BaseModel):
    credential: str
    proof: Optional[Any] = None


class AuthenticateResponse(BaseModel):
    success: bool
    root: str
    sequence: int


class VerifyRequest(BaseModel):
    leaf: str
    root: str
    proof: Any
    depth: Optional[int] = None


class VerifyResponse(BaseModel):
    valid: bool


def create_app(registry: CredentialRegistry | None = None) -> FastAPI:
    log_level: Optional[str] = None
    if registry is None:
        settings = load_settings()
        log_level = settings.log_level
        registry = CredentialRegistry.from_settings(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        # Logging is installed when the app is served, not when it is imported.
        if log_level is not None:
            configure_logging(log_level)
        yield

    app = FastAPI(title="KeylessAuth", description="Merkle-anchored credential registry", lifespan=lifespan)
    app.state.registry = registry

    @app.get("/root", response_model=RootResponse)
    async def get_root() -> RootResponse:
        return RootResponse(**auth.describe_root(registry))

    @app.get("/roots", response_model=List[RootResponse])
    async def get_roots() -> List[RootResponse]:
        return [RootResponse(**entry) for entry in auth.root_history(registry)]

    @app.post("/register", response_model=RegisterResponse)
    def register(request: CredentialRequest) -> RegisterResponse:
        try:
            payload = auth.register_credential(registry, request.credential)
        except InvalidInputError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except DuplicateCredentialError as exc:
            raise HTTPException(status_code=409, detail="Credential already registered") from exc
        except RegistrationNotFinalizedError as exc:
            logger.error("Registration not finalized: %s", exc)
            raise HTTPException(status_code=503, detail="Registration not finalized, retry later") from exc
        return RegisterResponse(**payload)

    @app.post("/register/batch", response_model=BatchRegisterResponse)
    def register_batch(request: BatchRegisterRequest) -> BatchRegisterResponse:
        try:
            payload = auth.register_credentials(registry, request.credentials)
        except InvalidInputError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except DuplicateCredentialError as exc:
            raise HTTPException(status_code=409, detail="Batch contains a registered credential") from exc
        except RegistrationNotFinalizedError as exc:
            logger.error("Batch registration not finalized: %s", exc)
            raise HTTPException(status_code=503, detail="Registration not finalized, retry later") from exc
        return BatchRegisterResponse(**payload)

    @app.post("/proof", response_model=ProofResponse)
    async def proof(request: CredentialRequest) -> ProofResponse:
        try:
            payload = auth.issue_proof(registry, request.credential)
        except InvalidInputError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except LeafNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Unknown credential") from exc
        return ProofResponse(**payload)

    @app.post("/authenticate", response_model=AuthenticateResponse)
    async def authenticate(request: AuthenticateRequest) -> AuthenticateResponse:
        try:
            payload = auth.authenticate(registry, request.credential, request.proof)  # type: ignore[arg-type]
        except InvalidInputError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return AuthenticateResponse(**payload)

    @app.post("/verify", response_model=VerifyResponse)
    async def verify_proof(request: VerifyRequest) -> VerifyResponse:
        return VerifyResponse(valid=verify(request.leaf, request.proof, request.root, depth=request.depth))  # type: ignore[arg-type]

    return app


app = create_app()


__all__ = ["app", "create_app"]
