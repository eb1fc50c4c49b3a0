"""Главный файл FastAPI приложения."""
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Union

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from jinja2 import Environment, FileSystemLoader, select_autoescape

from pushr.auth import AuthGate, require_auth
from pushr.config import AppConfig, load_config
from pushr.database import create_session_factory
from pushr.deployer import Deployer
from pushr.errors import (
    DeployInProgress,
    InvalidDeployRequest,
    MetadataUnavailable,
    PushrError,
    TargetNotFound,
)
from pushr.logs import setup_logging
from pushr.runner import SubprocessRunner
from pushr.schemas import DeployRequest
from pushr.stats import DeployStatsStore
from pushr.webhook import deploy_in_background, handle_push, verify_github_signature


NAME_COOKIE = "pushr_name"
TEMPLATES_DIR = Path(__file__).parent / "templates"

ERROR_STATUS = {
    InvalidDeployRequest: 400,
    DeployInProgress: 409,
    TargetNotFound: 500,
}

logger = logging.getLogger("pushr.web")


class Jinja2Templates:
    def __init__(self, directory: Path):
        self.env = Environment(
            loader=FileSystemLoader(str(directory)),
            autoescape=select_autoescape(["html"]),
        )

    def TemplateResponse(self, template_name: str, context: dict, status_code: int = 200):
        template = self.env.get_template(template_name)
        content = template.render(**context)
        return HTMLResponse(content=content, status_code=status_code)


templates = Jinja2Templates(TEMPLATES_DIR)


def build_deployer(config: AppConfig, logger: Optional[logging.Logger] = None) -> Deployer:
    """Собрать движок с настоящим запуском команд."""
    return Deployer(
        config=config,
        runner=SubprocessRunner(),
        stats=DeployStatsStore(config.stats_file),
        session_factory=create_session_factory(config.database_url),
        logger=logger,
    )


def get_deployer(request: Request) -> Deployer:
    return request.app.state.deployer


async def _pushr_error_handler(request: Request, exc: PushrError):
    status_code = next(
        (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)),
        500,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, **exc.details},
    )


async def _current_info(deployer: Deployer):
    try:
        return await deployer.commit_info(deployer.target())
    except MetadataUnavailable as e:
        logger.warning("Repository info unavailable: %s", e.message)
        return None


def create_app(config: Optional[AppConfig] = None, deployer: Optional[Deployer] = None) -> FastAPI:
    """Создать приложение; без аргументов конфигурация читается при старте."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_config = config or load_config()
        deploy_logger = setup_logging(app_config).getChild("deploy")
        app.state.config = app_config
        app.state.gate = AuthGate(app_config.auth)
        app.state.deployer = deployer or build_deployer(app_config, deploy_logger)
        yield

    # Встроенные /docs, /redoc и /openapi.json не проходят через require_auth
    app = FastAPI(
        title="pushr",
        lifespan=lifespan,
        dependencies=[Depends(require_auth)],
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.add_exception_handler(PushrError, _pushr_error_handler)

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request, deployer: Deployer = Depends(get_deployer)):
        """Последняя ревизия и последние деплои по окружениям."""
        return templates.TemplateResponse(
            "info.html",
            {
                "config": deployer.config,
                "info": await _current_info(deployer),
                "stats": deployer.stats(),
                "name": request.cookies.get(NAME_COOKIE, ""),
            },
        )

    @app.post("/")
    async def deploy_root(
        request: Request,
        background_tasks: BackgroundTasks,
        deployer: Deployer = Depends(get_deployer),
    ):
        """Push-уведомление GitHub (JSON или форма с payload) либо ручной деплой оператором."""
        body_bytes = await request.body()
        content_type = request.headers.get("Content-Type", "")
        if "application/json" in content_type:
            return _handle_push_request(request, deployer, background_tasks, body_bytes, body_bytes)

        form = await request.form()
        # GitHub по умолчанию шлет JSON в поле payload формы
        if "payload" in form or request.headers.get("X-GitHub-Event"):
            payload_text = form.get("payload") or ""
            return _handle_push_request(request, deployer, background_tasks, body_bytes, payload_text)

        deploy_request = DeployRequest(
            environment=form.get("rails_env") or form.get("environment") or None,
            branch=form.get("branch") or None,
            name=form.get("name") or None,
            command=form.get("command") or None,
        )
        result = await deployer.deploy(deployer.target(deploy_request.environment), deploy_request)
        response = templates.TemplateResponse(
            "deployed.html",
            {"config": deployer.config, "result": result},
        )
        if deploy_request.name:
            response.set_cookie(NAME_COOKIE, deploy_request.name, max_age=365 * 24 * 3600)
        return response

    @app.get("/api/status")
    async def status(deployer: Deployer = Depends(get_deployer)):
        """Информация о ревизии и последних деплоях в JSON."""
        info = await _current_info(deployer)
        return {
            "application": deployer.config.application,
            "commit": info.model_dump(mode="json") if info else None,
            "deploys": {env: record.model_dump(mode="json") for env, record in deployer.stats().items()},
            "deploying": [env for env in deployer.config.environments if deployer.is_deploying(env)],
        }

    @app.post("/api/deploy")
    async def deploy_api(deploy_request: DeployRequest, deployer: Deployer = Depends(get_deployer)):
        """Синхронный деплой, результат в JSON."""
        result = await deployer.deploy(deployer.target(deploy_request.environment), deploy_request)
        return result.model_dump(mode="json")

    @app.get("/api/attempts")
    async def attempts(limit: int = 20, deployer: Deployer = Depends(get_deployer)):
        """Журнал попыток деплоя."""
        return {"attempts": deployer.attempts(limit)}

    @app.get("/style.css")
    async def style():
        return Response(
            content=(TEMPLATES_DIR / "style.css").read_text(encoding="utf-8"),
            media_type="text/css; charset=utf-8",
        )

    @app.get("/favicon.ico")
    async def favicon():
        return Response(content=b"", media_type="image/gif")

    return app


def _handle_push_request(
    request: Request,
    deployer: Deployer,
    background_tasks: BackgroundTasks,
    body_bytes: bytes,
    payload_text: Union[bytes, str],
):
    """Push-уведомление: 200 при любом исходе деплоя.

    Подпись проверяется по сырому телу запроса, JSON берется из payload_text.
    """
    if not payload_text:
        raise HTTPException(status_code=400, detail="Тело запроса пусто")

    signature_header = request.headers.get("X-Hub-Signature-256")
    if not verify_github_signature(body_bytes, signature_header, deployer.config.webhook_secret):
        raise HTTPException(status_code=401, detail="Неверная подпись webhook")

    try:
        payload = json.loads(payload_text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise HTTPException(status_code=400, detail=f"Неверный формат JSON: {e}")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Payload должен быть JSON объектом (словарем)")

    response, deploy_request = handle_push(deployer.config, payload)
    if deploy_request is not None:
        background_tasks.add_task(deploy_in_background, deployer, deploy_request)
    return response


app = create_app()
