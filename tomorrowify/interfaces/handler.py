import logging
from typing import Any, Dict, Optional

from tomorrowify.application.orchestrator import Orchestrator
from tomorrowify.application.worker import RotationWorker
from tomorrowify.crosscutting.config import Settings, load_settings
from tomorrowify.crosscutting.logging import log_with_fields, setup_logging
from tomorrowify.crosscutting.metrics import MetricsEmitter
from tomorrowify.domain.ports import TokenRepository
from tomorrowify.infrastructure.cloudwatch import CloudWatchMetricsSink
from tomorrowify.infrastructure.providers.spotify import SpotifyAuthService, SpotifyProviderFactory
from tomorrowify.infrastructure.tokens import DynamoDBTokenRepository, JsonFileTokenRepository


logger = logging.getLogger(__name__)


def build_token_repository(settings: Settings) -> TokenRepository:
    if settings.tokens_file:
        return JsonFileTokenRepository(settings.tokens_file)
    return DynamoDBTokenRepository(settings.token_table)


def build_orchestrator(settings: Settings,
                       tokens: Optional[TokenRepository] = None,
                       sink: Optional[Any] = None) -> Orchestrator:
    """Wire the production collaborators for a rotation run."""
    auth = SpotifyAuthService(
        settings.client_id,
        settings.client_secret,
        redirect_uri=settings.redirect_uri,
        scope=settings.get_spotify_scope_string(),
        requests_timeout=settings.requests_timeout,
    )
    worker = RotationWorker(
        auth=auth,
        provider_factory=SpotifyProviderFactory(settings),
        emitter=MetricsEmitter(sink or CloudWatchMetricsSink(), settings.metrics_namespace),
        tomorrow_name=settings.tomorrow_playlist,
        today_name=settings.today_playlist,
    )
    return Orchestrator(
        tokens=tokens or build_token_repository(settings),
        worker=worker,
        max_workers=settings.max_workers,
    )


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Scheduled-event entry point. The event payload is not used."""
    settings = load_settings()
    run_logger = setup_logging(settings.log_level)
    request_id = getattr(context, 'aws_request_id', None)

    log_with_fields(run_logger, 'INFO', 'Invocation started', {
        'aws_request_id': request_id,
        'settings': settings.summary(),
    })
    signal = build_orchestrator(settings).run_all()
    log_with_fields(run_logger, 'INFO', 'Invocation finished', {
        'aws_request_id': request_id,
        'dispatched': signal.dispatched,
        'completed': signal.completed,
    })
    return {'statusCode': 200}
