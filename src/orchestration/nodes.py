"""
Workflow node functions for the report pipeline.
"""

import time

from pydantic import ValidationError

from src.orchestration.state import ReportOutput, ReportState, ReportStatus
from src.reporting.aggregator import aggregate, coerce_audits
from src.reporting.base import RenderPayload
from src.reporting.compliance import build_summary
from src.reporting.errors import AggregationError, SerializationError
from src.reporting.image_resolver import resolve_images
from src.reporting.kinds import build_filename
from src.schemas.models import ReportSummary
from utils.logger import get_logger, set_request_id

logger = get_logger(__name__, component="WORKFLOW")


def _coerce_summary(summary, records) -> ReportSummary:
    """Caller-supplied summary, or one computed from the audits when omitted."""
    if summary is None:
        computed = build_summary(records)
        logger.info(f"Summary computed from audits: {computed.average_compliance_label} average")
        return computed
    if isinstance(summary, ReportSummary):
        return summary
    try:
        return ReportSummary.model_validate(summary)
    except ValidationError as e:
        raise AggregationError(f"invalid summary ({e.error_count()} error(s))") from e


def aggregate_node(state: ReportState) -> ReportState:
    """Validate audits, build report data and the headline summary."""
    set_request_id(state["request_id"])
    logger.info("=" * 80)
    logger.info(f"STARTING {state['report_format'].value.upper()} REPORT: {state['kind'].report_title}")
    logger.info("=" * 80)

    state["start_time"] = time.time()
    state["status"] = ReportStatus.AGGREGATING

    try:
        records = coerce_audits(state["audits"])
        state["data"] = aggregate(records, state["questions"])

        state["summary"] = _coerce_summary(state.get("summary"), records)
    except AggregationError as e:
        logger.error(f"Aggregation failed: {e}")
        state["error"] = e
    except Exception as e:
        logger.error(f"Aggregation failed unexpectedly: {e}", exc_info=True)
        state["error"] = e

    return state


def resolve_images_node(state: ReportState) -> ReportState:
    """Fetch every photo the chosen format embeds, before any layout starts."""
    state["status"] = ReportStatus.RESOLVING_IMAGES

    try:
        data = state["data"]
        renderer = state["renderer"]
        kind = state["kind"]
        references = data.photo_references(lambda row: renderer.wants_photo(row, kind))

        if not references:
            logger.info("No photo evidence to resolve")
            state["omitted_photos"] = 0
            return state

        resolved = resolve_images(references)
        state["omitted_photos"] = sum(1 for image in resolved.values() if image is None)
        state["data"] = data.attach_photos(resolved)
    except Exception as e:
        logger.error(f"Image resolution failed: {e}", exc_info=True)
        state["error"] = e

    return state


def render_node(state: ReportState) -> ReportState:
    """Lay out and serialize the whole document."""
    state["status"] = ReportStatus.RENDERING

    try:
        payload = RenderPayload(
            kind=state["kind"],
            summary=state["summary"],
            data=state["data"],
            charts=state["charts"],
            generated_on=state["on_date"],
            roster=state.get("roster"),
        )
        state["content"] = state["renderer"].render(payload)
        state["status"] = ReportStatus.SERIALIZED
    except SerializationError as e:
        logger.error(f"Rendering failed: {e}", exc_info=True)
        state["error"] = e
    except Exception as e:
        logger.error(f"Render setup failed: {e}", exc_info=True)
        state["error"] = e

    return state


def deliver_node(state: ReportState) -> ReportState:
    """Wrap the serialized bytes with filename and media type."""
    report_format = state["report_format"]
    content = state["content"]

    try:
        output = ReportOutput(
            filename=build_filename(state["kind"], report_format, state["on_date"]),
            content=content,
            media_type=report_format.media_type,
            format=report_format,
            kind=state["kind"],
            omitted_photos=state.get("omitted_photos", 0),
        )
    except Exception as e:
        logger.error(f"Delivery failed: {e}", exc_info=True)
        state["error"] = e
        return state

    state["output"] = output
    state["status"] = ReportStatus.DELIVERED

    elapsed = time.time() - state["start_time"]
    logger.info(
        f"Report delivered: {state['output'].filename} "
        f"({len(content)} bytes, {elapsed:.2f}s, {state['output'].omitted_photos} photo(s) omitted)"
    )
    return state


def fail_node(state: ReportState) -> ReportState:
    """Terminal state for fatal errors; nothing is delivered."""
    state["status"] = ReportStatus.FAILED
    state["output"] = None
    logger.error(f"Report generation failed: {state['error']}")
    return state
