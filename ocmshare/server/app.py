"""
FastAPI application for the ocmshare server.

Serves the Open Cloud Mesh endpoints remote servers call (shares,
notifications, invite-accepted, discovery) and an API-key protected
management API used by the local side to send shares, issue invitations
and run the delivery queue.
"""

import logging
import secrets
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Union

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..builder import SharePayloadBuilder
from ..config import ShareTypeConfig
from ..database import get_database
from ..delivery import ShareDispatchRetryJob, Transport
from ..dispatcher import NotificationDispatcher
from ..exceptions import (
    ActionNotSupportedError,
    AlreadyAcceptedError,
    AuthenticationFailedError,
    BadRequestError,
    DeliveryFailedError,
    InvalidTokenError,
    MissingArgumentsError,
    OCMError,
    ProviderCouldNotAddShareError,
    ProviderNotFoundError,
    ShareNotFoundError,
    UnsupportedShareTypeError,
    UntrustedServerError,
)
from ..invitations import InvitationAcceptanceWorkflow
from ..models import ShareType
from ..protocol import ShareProtocol
from ..providers import ProviderRegistry
from ..stores import SqlJobQueue, SqlTokenStore
from ..transport import HttpTransport, split_cloud_id
from ..trust import StaticUserDirectory, TrustedServers, TrustPolicy, UserDirectory
from .config import ServerConfig

logger = logging.getLogger("ocmshare.server")

WireId = Union[str, int]


class ShareCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    share_with: Optional[str] = Field(None, alias="shareWith")
    name: Optional[str] = None
    description: Optional[str] = None
    provider_id: Optional[WireId] = Field(None, alias="providerId")
    owner: Optional[str] = None
    owner_display_name: Optional[str] = Field(None, alias="ownerDisplayName")
    sender: Optional[str] = None
    sender_display_name: Optional[str] = Field(None, alias="senderDisplayName")
    # protocol v1.0 names for sender / senderDisplayName
    shared_by: Optional[str] = Field(None, alias="sharedBy")
    shared_by_display_name: Optional[str] = Field(None, alias="sharedByDisplayName")
    share_type: Optional[str] = Field(None, alias="shareType")
    resource_type: Optional[str] = Field(None, alias="resourceType")
    expiration: Optional[int] = None
    protocol: Any = None

    def to_fields(self) -> Dict[str, Any]:
        """Wire-named fields; a missing sender means the owner shared it."""
        sender = self.sender or self.shared_by
        sender_display_name = self.sender_display_name or self.shared_by_display_name
        if sender is None:
            sender = self.owner
            sender_display_name = self.owner_display_name or self.owner
        return {
            "shareWith": self.share_with,
            "name": self.name,
            "description": self.description,
            "providerId": None if self.provider_id is None else str(self.provider_id),
            "owner": self.owner,
            "ownerDisplayName": self.owner_display_name,
            "sender": sender,
            "senderDisplayName": sender_display_name,
            "shareType": self.share_type,
            "resourceType": self.resource_type,
            "expiration": self.expiration,
            "protocol": self.protocol,
        }


class NotificationCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    notification_type: Optional[str] = Field(None, alias="notificationType")
    resource_type: Optional[str] = Field(None, alias="resourceType")
    provider_id: Optional[WireId] = Field(None, alias="providerId")
    notification: Any = None


class InviteAcceptedRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipient_provider: str = Field(alias="recipientProvider")
    token: str
    user_id: str = Field(alias="userID")
    email: str = ""
    name: str = ""


class InvitationCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: str
    recipient_provider: str = Field(alias="recipientProvider")
    user_id: str = Field(alias="userID")
    email: str = ""
    name: str = ""


class OutboundNotification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    remote: str
    notification_type: str = Field(alias="notificationType")
    resource_type: str = Field(alias="resourceType")
    provider_id: WireId = Field(alias="providerId")
    notification: Dict[str, Any] = Field(default_factory=dict)


def _validation_error(message: str, errors: Optional[list] = None) -> JSONResponse:
    return JSONResponse({"message": message, "validationErrors": errors or []}, status_code=400)


def _invite_error(error: OCMError, status_code: int) -> JSONResponse:
    return JSONResponse({"message": error.message, "error": True}, status_code=status_code)


def create_app(
    config: Optional[ServerConfig] = None,
    registry: Optional[ProviderRegistry] = None,
    directory: Optional[UserDirectory] = None,
    transport: Optional[Transport] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    if config is None:
        config = ServerConfig.from_env()

    logging.getLogger("ocmshare").setLevel(config.log_level.upper())

    registry = registry if registry is not None else ProviderRegistry()
    directory = directory or StaticUserDirectory(config.local_users, config.local_groups)
    trust = TrustedServers(TrustPolicy(config.trust_policy), config.trusted_servers)
    builder = SharePayloadBuilder(ShareTypeConfig(registry=registry))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = get_database(config.database_url)
        outbound = transport or HttpTransport()
        app.state.db = db
        app.state.config = config
        app.state.dispatcher = NotificationDispatcher(registry, outbound)
        app.state.delivery = ShareDispatchRetryJob(outbound, SqlJobQueue(db), config.federation)
        app.state.invitations = InvitationAcceptanceWorkflow(SqlTokenStore(db), trust)
        yield
        if transport is None:
            outbound.close()

    app = FastAPI(
        title="ocmshare",
        description="Open Cloud Mesh share exchange server",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.registry = registry
    app.state.directory = directory
    app.state.trust = trust

    def get_dispatcher() -> NotificationDispatcher:
        return app.state.dispatcher

    def get_delivery() -> ShareDispatchRetryJob:
        return app.state.delivery

    def get_invitations() -> InvitationAcceptanceWorkflow:
        return app.state.invitations

    def validate_api_key(x_api_key: str = Header(None)) -> str:
        if x_api_key is None or x_api_key not in app.state.config.api_keys:
            raise HTTPException(status_code=401, detail="Invalid or missing API key")
        return x_api_key

    def discovery_document() -> Dict[str, Any]:
        resource_types = []
        for resource_type in registry.resource_types():
            try:
                provider = registry.resolve(resource_type)
            except ProviderNotFoundError:
                continue
            resource_types.append(
                {
                    "name": resource_type,
                    "shareTypes": sorted(provider.supported_share_types),
                    "protocols": {"webdav": config.webdav_path},
                }
            )
        return {
            "enabled": True,
            "apiVersion": config.api_version,
            "endPoint": f"{config.base_url.rstrip('/')}/ocm",
            "provider": "ocmshare",
            "resourceTypes": resource_types,
        }

    @app.get("/ocm-provider")
    async def ocm_provider():
        return discovery_document()

    @app.get("/.well-known/ocm")
    async def well_known_ocm():
        return discovery_document()

    # ==================== Open Cloud Mesh API ====================

    @app.post("/ocm/shares", status_code=201)
    def add_share(
        body: ShareCreate,
        dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    ):
        fields = body.to_fields()
        if isinstance(fields["shareWith"], str):
            fields["shareWith"] = split_cloud_id(fields["shareWith"])[0]

        try:
            share = builder.build(fields)
        except MissingArgumentsError as e:
            return _validation_error("Missing arguments", e.errors)
        except UnsupportedShareTypeError as e:
            return JSONResponse({"message": e.message}, status_code=501)

        if share.share_type == ShareType.USER and not directory.user_exists(share.share_with):
            return _validation_error(
                f'User "{share.share_with}" does not exists at {config.base_url}'
            )
        if share.share_type == ShareType.GROUP and not directory.group_exists(share.share_with):
            return _validation_error(
                f'Group "{share.share_with}" does not exists at {config.base_url}'
            )

        try:
            dispatcher.receive_share(share)
        except (ProviderNotFoundError, ProviderCouldNotAddShareError) as e:
            return JSONResponse({"message": e.message}, status_code=501)
        except OCMError:
            return _validation_error(f"Internal error at {config.base_url}")

        recipient_display_name = ""
        if share.share_type == ShareType.USER:
            recipient_display_name = directory.display_name(share.share_with)
        return JSONResponse({"recipientDisplayName": recipient_display_name}, status_code=201)

    @app.post("/ocm/notifications", status_code=201)
    def receive_notification(
        body: NotificationCreate,
        dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    ):
        provider_id = None if body.provider_id is None else str(body.provider_id)
        try:
            result = dispatcher.dispatch(
                body.notification_type, body.resource_type, provider_id, body.notification
            )
        except MissingArgumentsError:
            return _validation_error("Missing arguments")
        except (ProviderNotFoundError, ShareNotFoundError) as e:
            return _validation_error(e.message)
        except ActionNotSupportedError as e:
            return JSONResponse({"message": e.message}, status_code=501)
        except BadRequestError as e:
            return JSONResponse(e.return_message, status_code=400)
        except AuthenticationFailedError:
            return JSONResponse({"message": "RESOURCE_NOT_FOUND"}, status_code=403)
        except OCMError:
            return _validation_error(f"Internal error at {config.base_url}")

        return JSONResponse(result, status_code=201)

    @app.post("/ocm/invite-accepted")
    def invite_accepted(
        body: InviteAcceptedRequest,
        invitations: InvitationAcceptanceWorkflow = Depends(get_invitations),
    ):
        try:
            accepted = invitations.accept(
                body.recipient_provider, body.token, body.user_id, body.email, body.name
            )
        except InvalidTokenError as e:
            return _invite_error(e, 400)
        except UntrustedServerError as e:
            return _invite_error(e, 403)
        except AlreadyAcceptedError as e:
            return _invite_error(e, 409)

        return accepted.to_dict()

    # ==================== Management API ====================

    @app.post("/api/v1/shares", status_code=202)
    def send_share(
        body: ShareCreate,
        delivery: ShareDispatchRetryJob = Depends(get_delivery),
        api_key: str = Depends(validate_api_key),
    ):
        fields = body.to_fields()
        if fields["protocol"] is None:
            fields["protocol"] = ShareProtocol.legacy(secrets.token_urlsafe(32)).to_dict()

        try:
            share = builder.build(fields)
        except MissingArgumentsError as e:
            raise HTTPException(status_code=400, detail={"message": e.message, "validationErrors": e.errors})
        except UnsupportedShareTypeError as e:
            raise HTTPException(status_code=501, detail=e.message)

        if "@" not in share.share_with:
            raise HTTPException(status_code=400, detail="shareWith must be a cloud id (user@server)")

        job = delivery.schedule(share)
        return {"jobId": job.id, "status": "queued", "sharedSecret": share.shared_secret}

    @app.get("/api/v1/jobs")
    def list_jobs(
        delivery: ShareDispatchRetryJob = Depends(get_delivery),
        api_key: str = Depends(validate_api_key),
    ):
        return {"jobs": [job.to_dict() for job in delivery.queue.list_jobs()]}

    @app.post("/api/v1/jobs/run")
    def run_jobs(
        delivery: ShareDispatchRetryJob = Depends(get_delivery),
        api_key: str = Depends(validate_api_key),
    ):
        outcomes = delivery.run_due()
        return {"outcomes": {job_id: outcome.value for job_id, outcome in outcomes.items()}}

    @app.post("/api/v1/invitations", status_code=201)
    def create_invitation(
        body: InvitationCreate,
        invitations: InvitationAcceptanceWorkflow = Depends(get_invitations),
        api_key: str = Depends(validate_api_key),
    ):
        record = invitations.issue(
            sender=body.sender,
            recipient_provider=body.recipient_provider,
            user_id=body.user_id,
            email=body.email,
            name=body.name,
        )
        return record.to_dict()

    @app.post("/api/v1/notifications")
    def send_notification(
        body: OutboundNotification,
        dispatcher: NotificationDispatcher = Depends(get_dispatcher),
        api_key: str = Depends(validate_api_key),
    ):
        try:
            result = dispatcher.send_notification(
                body.remote,
                body.notification_type,
                body.resource_type,
                str(body.provider_id),
                body.notification,
            )
        except MissingArgumentsError as e:
            raise HTTPException(status_code=400, detail=e.message)
        except DeliveryFailedError as e:
            raise HTTPException(status_code=502, detail=e.message)

        return {"delivered": True, "response": result}

    return app


class OCMShareServer:
    """High-level server class for running ocmshare."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 8000,
        database_url: Optional[str] = None,
        api_keys: Optional[set] = None,
        registry: Optional[ProviderRegistry] = None,
        config: Optional[ServerConfig] = None,
        **kwargs,
    ):
        self.config = config or ServerConfig(
            host=host,
            port=port,
            database_url=database_url,
            api_keys=api_keys or ServerConfig().api_keys,
            **kwargs,
        )
        self.app = create_app(self.config, registry=registry)

    def run(self):
        """Run the server (blocking)."""
        import uvicorn

        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level,
        )

    async def run_async(self):
        """Run the server asynchronously."""
        import uvicorn

        config = uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level,
        )
        server = uvicorn.Server(config)
        await server.serve()
