import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .. import config
from ..errors import GuardError, RejectionCode
from ..lamport import LamportSignature
from ..logging_config import audit_events, configure_logging, get_request_id, set_request_id
from ..util import hex_to_bytes
from .deployment import Deployment, load_configured_deployment
from .models import (
    CommitmentUpdateRequest,
    GuardianRequest,
    HybridExecuteRequest,
    MerkleExecuteRequest,
    OneTimeExecuteRequest,
    ProposeRequest,
    ProtectedActionRequest,
)

STATUS_BY_CODE = {
    RejectionCode.REPLAY_REJECTED: 409,
    RejectionCode.SIGNATURE_INVALID: 403,
    RejectionCode.PROOF_INVALID: 403,
    RejectionCode.COMMITMENT_MISMATCH: 403,
    RejectionCode.AUTHORIZATION_DENIED: 403,
    RejectionCode.STATE_INVALID: 423,
    RejectionCode.EXECUTION_FAILED: 502,
}

logger = logging.getLogger(__name__)


def create_app(deployment: Optional[Deployment] = None) -> FastAPI:
    """
    Build the service. Without an explicit deployment, the one described by
    the configured deployment file is loaded at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "deployment", None) is None:
            configure_logging(config.LOG_LEVEL, json_format=config.LOG_JSON)
            failed = [name for name, ok in config.validate_config().items() if not ok]
            if failed:
                logger.warning("configuration checks failed: %s", ", ".join(failed))
            if config.is_production() and config.USED_SET_BACKEND == "memory":
                logger.warning("production deployment with non-persistent used sets")
            app.state.deployment = load_configured_deployment()
        yield

    app = FastAPI(title="pqguard", lifespan=lifespan)
    app.state.deployment = deployment

    @app.middleware("http")
    async def request_id(request: Request, call_next):
        rid = set_request_id(request.headers.get("x-request-id"))
        response = await call_next(request)
        response.headers["x-request-id"] = rid
        return response

    @app.exception_handler(GuardError)
    async def guard_error(request: Request, exc: GuardError):
        return JSONResponse(
            status_code=STATUS_BY_CODE[exc.code],
            content={**exc.to_dict(), "request_id": get_request_id()}
        )

    @app.exception_handler(ValueError)
    async def value_error(request: Request, exc: ValueError):
        return JSONResponse(status_code=422, content={"code": "MALFORMED", "details": str(exc)})

    def dep() -> Deployment:
        return app.state.deployment

    def require(component, name: str):
        if component is None:
            raise HTTPException(404, f"{name.upper()}_NOT_CONFIGURED")
        return component

    @app.get("/health")
    def health():
        return {"status": "ok", **dep().status()}

    @app.get("/audit")
    def audit(kind: Optional[str] = None, actor: Optional[str] = None):
        return [r.to_dict() for r in dep().audit_log.query(kind=kind, actor=actor)]

    # -- one-time and merkle --------------------------------------------

    @app.post("/onetime/execute")
    def onetime_execute(req: OneTimeExecuteRequest):
        store = require(dep().one_time, "one_time")
        return store.execute(req.action.to_action(), req.lamport_signature()).to_dict()

    @app.post("/merkle/execute")
    def merkle_execute(req: MerkleExecuteRequest):
        registry = require(dep().merkle, "merkle")
        record = registry.execute(
            req.action.to_action(),
            LamportSignature.from_list(req.signature) if req.signature else None,
            hex_to_bytes(req.leaf_hash, 32),
            [hex_to_bytes(p, 32) for p in req.proof],
            public_key=req.public_key.to_public_key() if req.public_key else None,
        )
        return record.to_dict()

    # -- hybrid ---------------------------------------------------------

    @app.post("/hybrid/execute")
    def hybrid_execute(req: HybridExecuteRequest):
        hybrid = require(dep().hybrid, "hybrid")
        record = hybrid.execute(
            req.action.to_action(),
            req.signature.to_signature(),
            hex_to_bytes(req.secret),
        )
        return record.to_dict()

    @app.post("/hybrid/commitment")
    def hybrid_commitment(req: CommitmentUpdateRequest):
        hybrid = require(dep().hybrid, "hybrid")
        caller = dep().authenticator.authenticate(
            "hybrid.update_commitment", {"commitment": req.commitment},
            req.issued_at, req.signature.to_signature()
        )
        return hybrid.update_commitment(caller, hex_to_bytes(req.commitment)).to_dict()

    # -- rotation -------------------------------------------------------

    @app.get("/rotation/state")
    def rotation_state():
        controller = require(dep().rotation, "rotation")
        return {"state": controller.state.value, **controller.to_dict()}

    @app.post("/rotation/propose")
    def rotation_propose(req: ProposeRequest):
        controller = require(dep().rotation, "rotation")
        caller = dep().authenticator.authenticate(
            "rotation.propose", {"new_key": req.new_key},
            req.issued_at, req.signature.to_signature()
        )
        return controller.propose(caller, req.new_key).to_dict()

    def _guardian_op(name: str, req: GuardianRequest) -> str:
        return dep().authenticator.authenticate(
            f"rotation.{name}", {}, req.issued_at, req.signature.to_signature()
        )

    @app.post("/rotation/finalize")
    def rotation_finalize(req: GuardianRequest):
        controller = require(dep().rotation, "rotation")
        return controller.finalize(_guardian_op("finalize", req)).to_dict()

    @app.post("/rotation/freeze")
    def rotation_freeze(req: GuardianRequest):
        controller = require(dep().rotation, "rotation")
        caller = _guardian_op("freeze", req)
        record = controller.freeze(caller)
        audit_events.security_event("frozen", severity="high", guardian=caller)
        return record.to_dict()

    @app.post("/rotation/unfreeze")
    def rotation_unfreeze(req: GuardianRequest):
        controller = require(dep().rotation, "rotation")
        return controller.unfreeze(_guardian_op("unfreeze", req)).to_dict()

    @app.post("/rotation/protected")
    def rotation_protected(req: ProtectedActionRequest):
        controller = require(dep().rotation, "rotation")
        record = controller.protected_action(hex_to_bytes(req.payload), req.signature.to_signature())
        return record.to_dict()

    return app
