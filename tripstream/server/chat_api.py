"""
FastAPI endpoints for plan generation.

Provides a non-streaming endpoint returning the finalized plan document
and a streaming endpoint that forwards the model's JSON as it is
generated, followed by the finalized document and per-item photos.
"""

import logging
import queue
import threading
import time
import uuid
from typing import Any, Dict, Iterator, List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from tripstream.graph.build import build_initial_state, create_chat_plan_graph, run_chat_plan_graph
from tripstream.server.config import ServerConfig, get_server_config
from tripstream.server.enrichment import iter_plan_images
from tripstream.server.places import PlacesClient, get_places_client
from tripstream.server.prompts import build_messages, build_plan_schema
from tripstream.server.sse import encode_sse, end_frame
from tripstream.shared.contracts.plan_output import ChatRequest, PlanItem
from tripstream.shared.llm.client import call_llm_json, iter_content_deltas, open_json_stream
from tripstream.shared.logging.config import safe_stringify, truncate


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

INVALID_REQUEST = "Provide 'message' and either 'destination' or 'coords'."
INVALID_JSON = "Invalid JSON returned by the model."

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_STREAM_DONE = object()


# ============================================================================
# Helpers
# ============================================================================


async def _read_request(http_request: Request, _log: str) -> Optional[ChatRequest]:
    try:
        body = await http_request.json()
    except ValueError:
        body = None
    logger.info(f"{_log}Request received | body={truncate(safe_stringify(body))}")
    if not isinstance(body, dict):
        return None
    try:
        request = ChatRequest.model_validate(body)
    except ValidationError as e:
        logger.info(f"{_log}Rejected request body: {e.error_count()} validation error(s)")
        return None
    return request if request.is_plannable() else None


def _radius(request: ChatRequest, config: ServerConfig) -> int:
    if "radius_meters" in request.model_fields_set:
        return request.radius_meters
    return config.default_radius_meters


def _finalize(
    raw_response: Optional[str],
    request: ChatRequest,
    config: ServerConfig,
    places: Optional[PlacesClient],
    request_id: str,
) -> Dict[str, Any]:
    plan_config = config.plan_config
    schema = build_plan_schema(plan_config)

    def _generate(messages: List[Dict[str, str]]) -> str:
        return call_llm_json(
            messages,
            schema,
            model=config.json_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )

    app = create_chat_plan_graph(generate=_generate, places=places)
    state = build_initial_state(
        request,
        radius_meters=_radius(request, config),
        plan_mode=plan_config.mode,
        enrich_enabled=places is not None,
        raw_response=raw_response,
        request_id=request_id,
    )
    return run_chat_plan_graph(app, state)


# ============================================================================
# Endpoints
# ============================================================================


@router.post("")
async def post_chat(http_request: Request):
    """
    Generate a plan with one completion and return the finalized document.
    """
    request_id = str(uuid.uuid4())
    _log = f"[rid={request_id}] [api=chat] "
    t0 = time.monotonic()

    request = await _read_request(http_request, _log)
    if request is None:
        return JSONResponse(status_code=400, content={"error": INVALID_REQUEST})

    config = get_server_config()
    try:
        final_state = _finalize(None, request, config, get_places_client(), request_id)
    except Exception as e:
        logger.exception(f"{_log}Plan generation failed: {e}")
        return JSONResponse(status_code=500, content={"error": str(e) or "server error"})
    finally:
        logger.info(f"{_log}Request complete | ms={int((time.monotonic() - t0) * 1000)}")

    document = final_state.get("final_document")
    if document is None:
        errors = final_state.get("errors") or ["server error"]
        return JSONResponse(status_code=500, content={"error": errors[-1]})
    return document


@router.post("/stream")
async def post_chat_stream(http_request: Request):
    """
    Stream a plan as text/event-stream.

    Event order: jsonDelta* (with ping when the model stalls), then
    jsonFinal or error, then planImage/planImageError per item when
    Places is configured, then end.
    """
    request_id = str(uuid.uuid4())
    _log = f"[rid={request_id}] [api=chat_stream] "

    request = await _read_request(http_request, _log)
    if request is None:
        return JSONResponse(status_code=400, content={"error": INVALID_REQUEST})

    config = get_server_config()
    places = get_places_client()
    return StreamingResponse(
        stream_plan_events(request, config, places, request_id),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


def stream_plan_events(
    request: ChatRequest,
    config: ServerConfig,
    places: Optional[PlacesClient],
    request_id: str,
) -> Iterator[str]:
    """
    Produce the frames of one streamed planning turn.

    Frames are produced on a worker thread. Whenever ping_interval_s
    passes without a frame a ping is sent, so the connection stays warm
    through model stalls, finalization and photo lookups.

    Args:
        request: Validated chat request
        config: Server configuration
        places: Places client, or None to skip enrichment and photos
        request_id: Identifier used in logs

    Yields:
        Encoded frames
    """
    _log = f"[rid={request_id}] [api=chat_stream] "
    t0 = time.monotonic()
    frames: "queue.Queue[Any]" = queue.Queue()
    stop = threading.Event()

    def _pump() -> None:
        producer = _plan_frames(request, config, places, request_id)
        try:
            for frame in producer:
                if stop.is_set():
                    logger.info(f"{_log}Client went away, stopping producer")
                    break
                frames.put(frame)
        finally:
            producer.close()
            frames.put(_STREAM_DONE)

    worker = threading.Thread(target=_pump, name=f"plan-stream-{request_id[:8]}", daemon=True)
    worker.start()
    try:
        while True:
            try:
                frame = frames.get(timeout=config.ping_interval_s)
            except queue.Empty:
                yield encode_sse("ping", {"t": int(time.time() * 1000)})
                continue
            if frame is _STREAM_DONE:
                break
            yield frame
    finally:
        stop.set()

    yield end_frame()
    logger.info(f"{_log}Request complete | ms={int((time.monotonic() - t0) * 1000)}")


def _plan_frames(
    request: ChatRequest,
    config: ServerConfig,
    places: Optional[PlacesClient],
    request_id: str,
) -> Iterator[str]:
    _log = f"[rid={request_id}] [api=chat_stream] "
    plan_config = config.plan_config
    radius = _radius(request, config)

    try:
        stream = open_json_stream(
            build_messages(request, radius, plan_config),
            build_plan_schema(plan_config),
            model=config.json_model,
            temperature=config.temperature,
            max_tokens=config.stream_max_tokens,
        )

        parts: List[str] = []
        for count, delta in enumerate(iter_content_deltas(stream), start=1):
            parts.append(delta)
            if count % config.delta_log_every == 0:
                logger.debug(f"{_log}json_stream_delta | chunks={count}, total_len={sum(map(len, parts))}")
            yield encode_sse("jsonDelta", delta)

        final_state = _finalize("".join(parts), request, config, places, request_id)
        document = final_state.get("final_document")
        if document is None:
            yield encode_sse("error", INVALID_JSON)
        else:
            yield encode_sse("jsonFinal", document)
            if places is not None:
                yield from _image_events(document, request, radius, places, config, _log)
    except Exception as e:
        logger.exception(f"{_log}Stream failed: {e}")
        yield encode_sse("error", str(e) or "server error")


def _image_events(
    document: Dict[str, Any],
    request: ChatRequest,
    radius: int,
    places: PlacesClient,
    config: ServerConfig,
    _log: str,
) -> Iterator[str]:
    days = [[PlanItem.model_validate(item) for item in day] for day in document.get("planDays", [])]

    def _lookup(title: str) -> Optional[str]:
        return places.find_photo_url(title, request.coords, radius)

    found = 0
    for day, index, title, url, error in iter_plan_images(days, _lookup, config.image_workers):
        if url:
            found += 1
            yield encode_sse("planImage", {"dayIdx": day, "itemIdx": index, "title": title, "image_url": url})
        else:
            yield encode_sse(
                "planImageError", {"dayIdx": day, "itemIdx": index, "title": title, "error": error}
            )
    logger.info(f"{_log}Photo lookups done | found={found}")
