"""FastAPI application entry point for the Zeus delivery machine.

Receives GitHub push webhooks and channel-link notifications, runs
commands, and exposes health and Prometheus metrics endpoints. Push
handling and commands run as background tasks so requests are
acknowledged immediately.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Set

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST
from pydantic import BaseModel, ValidationError

from src.sdm.config import DeliverySettings, get_settings
from src.sdm.events.metrics import generate_metrics_output
from src.sdm.machine import SoftwareDeliveryMachine
from src.sdm.push.handler import WebhookHandler, create_webhook_handler
from src.sdm.spring.deployment import stop_deployer
from src.zeus.machine import machine

logger = structlog.get_logger()

# Global instances, initialized during lifespan startup
settings: Optional[DeliverySettings] = None
sdm: Optional[SoftwareDeliveryMachine] = None
webhook_handler: Optional[WebhookHandler] = None
_background_tasks: Set[asyncio.Task] = set()


def configure_logging(level: str = "INFO", log_format: str = "json") -> None:
    """Route structlog and stdlib logging through one structlog renderer.

    Stdlib records keep their `extra` fields as event keys.
    """
    shared_processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[*shared_processors, structlog.stdlib.ExtraAdder()],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())


def _redact_secret(value: Optional[str], visible_chars: int = 4) -> Optional[str]:
    """Show only the first few characters of a secret."""
    if value is None:
        return None
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(cfg: DeliverySettings) -> None:
    logger.info(
        "Delivery machine configuration",
        github_base_url=cfg.github_base_url,
        github_web_url=cfg.github_web_url,
        github_token=_redact_secret(cfg.github_token),
        github_webhook_secret=_redact_secret(cfg.github_webhook_secret),
        slack_webhook_url=_redact_secret(cfg.slack_webhook_url, visible_chars=24),
        workspace_base_path=cfg.workspace_base_path,
        deploy_base_path=cfg.deploy_base_path,
        deploy_base_port=cfg.deploy_base_port,
        maven_command=cfg.maven_command,
        build_timeout_seconds=cfg.build_timeout_seconds,
        team_id=cfg.team_id,
        event_sinks=[s.value for s in cfg.event_sinks],
        host=cfg.host,
        port=cfg.port,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load settings, configure logging and assemble the machine."""
    global settings, sdm, webhook_handler

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    logger.info("Zeus delivery machine starting up")
    _log_configuration(settings)

    webhook_handler = create_webhook_handler(settings.github_webhook_secret)
    sdm = machine(settings)

    logger.info("Zeus delivery machine started")

    yield

    logger.info("Zeus delivery machine shutting down", pending_tasks=len(_background_tasks))
    for task in list(_background_tasks):
        task.cancel()
    await stop_deployer()
    if sdm is not None:
        await sdm.close()
    logger.info("Zeus delivery machine shutdown complete")


app = FastAPI(
    title="Zeus Software Delivery Machine",
    description="Push-driven goals, Spring project generation and branch deployments",
    version="1.0.0",
    lifespan=lifespan,
)


def _schedule(coroutine, description: str) -> None:
    """Run a coroutine in the background, logging failures."""

    async def run() -> None:
        try:
            await coroutine
        except Exception:
            logger.exception("Background task failed", task=description)

    task = asyncio.create_task(run())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


def _require_machine() -> SoftwareDeliveryMachine:
    if sdm is None or webhook_handler is None:
        raise HTTPException(status_code=503, detail="Delivery machine not initialized")
    return sdm


async def _json_body(request: Request) -> Dict[str, Any]:
    body = await request.body()
    if not body:
        return {}
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid JSON body: {exc}") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=422, detail="Expected a JSON object")
    return payload


@app.get("/health")
async def health():
    """Liveness probe: the process is up."""
    return {"status": "healthy"}


@app.get("/ready")
async def ready():
    """Readiness probe: the machine is assembled and GitHub answers with our token."""
    if sdm is None:
        dependencies = {"machine": "not_initialized", "github": "unknown"}
    else:
        github_ok = await sdm.github_client.health_check()
        dependencies = {"machine": "ready", "github": "healthy" if github_ok else "unhealthy"}

    is_ready = dependencies == {"machine": "ready", "github": "healthy"}
    body = {"status": "ready" if is_ready else "not_ready", "dependencies": dependencies}
    return JSONResponse(status_code=200 if is_ready else 503, content=body)


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_metrics_output(), media_type=CONTENT_TYPE_LATEST)


@app.post("/webhooks/github")
async def github_webhook(request: Request):
    """GitHub webhook receiver.

    Push events are verified against the webhook secret, parsed and handled
    in the background. Other event types are acknowledged and ignored.
    """
    delivery_machine = _require_machine()

    body = await request.body()
    if not webhook_handler.verify_signature(body, request.headers.get("X-Hub-Signature-256")):
        logger.warning("Rejected webhook with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    event_name = request.headers.get("X-GitHub-Event", "")
    if event_name == "ping":
        return {"status": "pong"}
    if event_name != "push":
        return {"status": "ignored", "message": f"Unsupported event type: {event_name or 'none'}"}

    payload = await _json_body(request)
    event = webhook_handler.parse_push_event(payload)
    if event is None:
        return {"status": "ignored", "message": "Unsupported or invalid push"}

    _schedule(delivery_machine.handle_push(event), f"push {event.push_id}")
    return {"status": "accepted", "push_id": event.push_id}


@app.post("/commands/{name}")
async def run_command(name: str, request: Request):
    """Run a command by name or intent.

    Parameters are validated before the command is scheduled, so invalid
    input is reported to the caller.
    """
    delivery_machine = _require_machine()

    registration = delivery_machine.find_command(name)
    if registration is None:
        raise HTTPException(status_code=404, detail=f"Unknown command: {name}")

    payload = await _json_body(request)
    try:
        parameters: Optional[BaseModel] = registration.parse_parameters(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=[
                {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
                for error in exc.errors()
            ],
        ) from exc

    _schedule(
        delivery_machine.run_command(registration.name, parameters),
        f"command {registration.name}",
    )
    return {"status": "accepted", "command": registration.name}


@app.post("/events/channel-link")
async def channel_link(request: Request):
    """A repository was linked to a chat channel."""
    delivery_machine = _require_machine()

    event = webhook_handler.parse_channel_link_event(await _json_body(request))
    if event is None:
        raise HTTPException(status_code=422, detail="Expected owner, repository and channel")

    _schedule(delivery_machine.handle_channel_link(event), f"channel link {event.full_repository}")
    return {"status": "accepted", "repository": event.full_repository}


if __name__ == "__main__":
    import uvicorn

    dev_settings = get_settings()
    uvicorn.run(
        "src.zeus.main:app",
        host=dev_settings.host,
        port=dev_settings.port,
    )
