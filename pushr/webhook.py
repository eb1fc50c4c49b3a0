"""Обработка push-уведомлений от GitHub."""
import hmac
import hashlib
import logging
from typing import Optional, Tuple

from pushr.config import AppConfig
from pushr.deployer import Deployer
from pushr.errors import PushrError
from pushr.schemas import DeployRequest


logger = logging.getLogger("pushr.webhook")


def verify_github_signature(payload_body: bytes, signature_header: Optional[str], secret: Optional[str]) -> bool:
    """Проверить подпись GitHub webhook."""
    if not secret:
        return True  # Если секрет не задан, пропускаем проверку

    if not signature_header:
        return False

    # GitHub использует формат "sha256=<hash>"
    if not signature_header.startswith('sha256='):
        return False

    expected_hash = signature_header[7:]
    computed_hash = hmac.new(
        secret.encode('utf-8'),
        payload_body,
        hashlib.sha256
    ).hexdigest()

    return hmac.compare_digest(expected_hash, computed_hash)


def push_request(config: AppConfig, payload: dict) -> Optional[DeployRequest]:
    """DeployRequest для push-уведомления или None, если ref не тот."""
    ref = payload.get("ref")
    if ref != config.deploy_ref:
        return None

    pusher = payload.get("pusher")
    name = None
    if isinstance(pusher, dict):
        name = pusher.get("name") or pusher.get("email")

    return DeployRequest(
        environment=config.default_environment,
        branch=config.default_branch,
        name=name or "github",
    )


async def deploy_in_background(deployer: Deployer, request: DeployRequest) -> None:
    """Деплой по push-уведомлению; ошибки только логируются."""
    try:
        await deployer.deploy(deployer.target(request.environment), request)
    except PushrError as e:
        logger.error("Push-triggered deploy was not started: %s", e.message)


def handle_push(config: AppConfig, payload: dict) -> Tuple[dict, Optional[DeployRequest]]:
    """Разобрать push-уведомление и решить, нужен ли деплой."""
    request = push_request(config, payload)
    if request is None:
        ref = payload.get("ref")
        logger.info("Ignoring push to %s, deploys follow %s", ref, config.deploy_ref)
        return {"message": "Ignored", "ref": ref}, None

    logger.info("Push to %s by %s, deploying %s", config.deploy_ref, request.name, request.environment)
    return {"message": "Deploy scheduled", "ref": config.deploy_ref, "environment": request.environment}, request
