"""AWS Lambda handler for the NYC events pipeline."""
import json
import logging
import os
import time
from typing import Dict, Any, Optional

from pipeline.config import load_config, PipelineConfig
from pipeline.errors import AlreadyRunningError, ConfigurationError
from pipeline.orchestrator import PipelineContext, ScrapeOrchestrator
from pipeline.scheduler import (
    RUN_COMPLETED,
    RUN_REQUESTED,
    SWEEP_ENRICH,
    SWEEP_GEOCODE,
    SWEEP_HYDRATE,
    SWEEP_REQUESTED,
    should_trigger,
)
from pipeline.status import StatusTracker
from pipeline.sweeps import run_sweep
from processor.merge import build_store, filter_stale, sort_for_feed
from processor.models import EventsSnapshot
from processor.temporal import today_in_nyc

SCHEDULED_EVENT = 'Scheduled Event'

RESPONSE_HEADERS = {
    'Content-Type': 'application/json',
    'Access-Control-Allow-Origin': '*',
}

logger = logging.getLogger(__name__)


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    RESERVED = set(vars(logging.LogRecord('', 0, '', 0, '', None, None))) | {'message', 'asctime'}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including any fields passed via extra."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in self.RESERVED and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def build_context(config: PipelineConfig) -> PipelineContext:
    """
    Build the production pipeline context.

    Args:
        config: Loaded pipeline configuration

    Returns:
        PipelineContext wired to DynamoDB, EventBridge and the scraping services
    """
    return PipelineContext.from_config(config)


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build an API Gateway proxy response.

    Args:
        status_code: HTTP status code
        body: JSON-serializable response body

    Returns:
        Response dict with statusCode, headers and a JSON body
    """
    return {
        'statusCode': status_code,
        'headers': dict(RESPONSE_HEADERS),
        'body': json.dumps(body),
    }


def _error_response(status_code: int, message: str, error: Exception, start_time: float) -> Dict[str, Any]:
    """
    Build a failure response describing an exception.

    Args:
        status_code: HTTP status code
        message: Summary message
        error: Exception that caused the failure
        start_time: Invocation start time from time.time()

    Returns:
        Response dict with success False, the error and its type, and the duration
    """
    duration = time.time() - start_time
    return _response(status_code, {
        'success': False,
        'message': message,
        'error': str(error),
        'error_type': type(error).__name__,
        'duration_seconds': round(duration, 2)
    })


def _request_route(event: Dict[str, Any]) -> Optional[tuple]:
    """Return (method, path) for API Gateway REST or HTTP API events."""
    method = event.get('httpMethod')
    path = event.get('path')

    http = (event.get('requestContext') or {}).get('http') or {}
    method = method or http.get('method')
    path = path or event.get('rawPath') or http.get('path')

    if not method or not path:
        return None
    return method.upper(), path.rstrip('/') or '/'


def _start_run(orchestrator: ScrapeOrchestrator, context: PipelineContext) -> Dict[str, Any]:
    """
    Admit a run and hand it to a fresh invocation.

    Raises:
        AlreadyRunningError: If a run with a fresh heartbeat is active
    """
    run = orchestrator.start_run()
    if context.publisher.run_requested(run.run_id):
        return _response(202, {
            'success': True,
            'message': 'Scraping started',
            'runId': run.run_id,
            'totalSources': run.total_sources,
        })

    orchestrator.abandon(run, 'Failed to dispatch scrape run')
    return _response(500, {
        'success': False,
        'message': 'Failed to dispatch scrape run',
        'runId': run.run_id,
    })


def _conflict_response(error: AlreadyRunningError) -> Dict[str, Any]:
    return _response(409, {
        'success': False,
        'message': 'Scraping already in progress',
        'runId': error.run_id,
        'minutesSinceUpdate': round(error.minutes_since_update, 1),
    })


def get_events(context: PipelineContext) -> Dict[str, Any]:
    """Serve the stored snapshot without past events, in feed order."""
    snapshot = context.store.load_events()
    active = filter_stale(build_store(snapshot.events), today_in_nyc(context.clock()))
    feed = EventsSnapshot(
        events=sort_for_feed(active.values()),
        last_fetched=snapshot.last_fetched,
        success=snapshot.success,
    )
    return _response(200, feed.to_dict())


def handle_http(event: Dict[str, Any], context: PipelineContext) -> Dict[str, Any]:
    """
    Route an API Gateway proxy request.

    Args:
        event: API Gateway proxy event
        context: Pipeline context

    Returns:
        API Gateway proxy response
    """
    method, path = _request_route(event)
    orchestrator = ScrapeOrchestrator(context)
    logger.info(f"{method} {path}")

    if method == 'GET' and path == '/events':
        return get_events(context)

    if method == 'POST' and path == '/events/fetch-or-refresh':
        try:
            return _start_run(orchestrator, context)
        except AlreadyRunningError as e:
            return _conflict_response(e)

    if method == 'GET' and path == '/events/status':
        tracker = StatusTracker(
            context.store,
            stale_run_minutes=context.config.stale_run_minutes,
            clock=context.clock,
        )
        return _response(200, tracker.snapshot())

    if method == 'POST' and path == '/events/reset-status':
        run = orchestrator.reset_status()
        return _response(200, {
            'success': True,
            'message': 'Scraping status has been reset',
            'status': run.to_dict(),
        })

    return _response(404, {'success': False, 'message': f"Route not found: {method} {path}"})


def handle_pipeline_event(
    event: Dict[str, Any],
    context: PipelineContext,
    lambda_context: Any = None,
) -> Dict[str, Any]:
    """
    Handle a scheduled trigger or a pipeline stage event from EventBridge.

    Args:
        event: EventBridge event
        context: Pipeline context
        lambda_context: Lambda context; supplies the request id and remaining time for runs

    Returns:
        Response dict with statusCode and a JSON body describing the outcome
    """
    detail_type = event.get('detail-type')
    detail = event.get('detail') or {}
    orchestrator = ScrapeOrchestrator(context)

    if detail_type == SCHEDULED_EVENT:
        last_completed = context.store.load_last_completed()
        if not should_trigger(last_completed, context.clock(), context.config.refresh_interval_hours):
            logger.info(
                f"Last run completed less than {context.config.refresh_interval_hours} hours ago, skipping",
                extra={'last_completed': str(last_completed)}
            )
            return _response(200, {'success': True, 'triggered': False, 'message': 'Data is fresh'})
        try:
            return _start_run(orchestrator, context)
        except AlreadyRunningError as e:
            logger.warning(f"Scheduled trigger skipped: {e}")
            return _response(200, {'success': True, 'triggered': False, 'message': str(e)})

    if detail_type == RUN_REQUESTED:
        logger.info(
            f"Executing run {detail.get('runId')}",
            extra={'start_index': detail.get('startIndex', 0)}
        )
        summary = orchestrator.execute_requested(
            detail.get('runId', ''),
            invocation_id=getattr(lambda_context, 'aws_request_id', None),
            remaining_ms=getattr(lambda_context, 'get_remaining_time_in_millis', None),
        )
        if summary is None:
            return _response(200, {'success': True, 'skipped': True, 'runId': detail.get('runId')})
        return _response(200, {'success': True, 'summary': summary.to_dict()})

    if detail_type == RUN_COMPLETED:
        published = [
            sweep for sweep in (SWEEP_HYDRATE, SWEEP_GEOCODE, SWEEP_ENRICH)
            if context.publisher.sweep_requested(sweep)
        ]
        return _response(200, {'success': True, 'sweepsRequested': published})

    if detail_type == SWEEP_REQUESTED:
        try:
            result = run_sweep(context, detail.get('sweep', ''))
        except ValueError as e:
            return _response(400, {'success': False, 'message': str(e)})
        return _response(200, {'success': True, 'sweep': detail.get('sweep'), 'result': result.to_dict()})

    return _response(400, {'success': False, 'message': f"Unsupported event type: {detail_type}"})


def lambda_handler(event: Dict[str, Any], lambda_context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the NYC events pipeline.

    Args:
        event: API Gateway proxy event or EventBridge event
        lambda_context: Lambda context object

    Returns:
        API Gateway proxy response (statusCode, headers, JSON body)
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))

    start_time = time.time()
    logger.info(
        "Lambda execution started",
        extra={'detail_type': event.get('detail-type'), 'path': event.get('path') or event.get('rawPath')}
    )

    try:
        config = load_config()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}", extra={'error_type': type(e).__name__})
        return _error_response(500, 'Configuration error', e, start_time)

    try:
        context = build_context(config)

        if _request_route(event) is not None:
            response = handle_http(event, context)
        elif event.get('detail-type'):
            response = handle_pipeline_event(event, context, lambda_context)
        else:
            response = _response(400, {'success': False, 'message': 'Unsupported event'})

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _error_response(500, 'Request failed', e, start_time)

    duration = time.time() - start_time
    logger.info(
        "Lambda execution completed",
        extra={'duration_seconds': round(duration, 2), 'status_code': response['statusCode']}
    )
    return response
