"""
Client-side planning turn.

PlanningSession wires one FrameDecoder to one PlanReconciler and
dispatches each decoded event to the right reconciler operation:

    jsonDelta       -> grow the JSON buffer, extract completed days, merge
    jsonFinal       -> parse, build the backfill pool, finalize
    planImage       -> patch the photo of an already-placed item
    planImageError  -> logged
    error           -> recorded as the turn's stream error
    replyDelta      -> appended to the reply text (older servers)

Every other event type is ignored. All handling is synchronous.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

from tripstream.plan.config import PlanConfig
from tripstream.plan.extractor import extract_completed_days
from tripstream.plan.fallback import suggestions_to_days
from tripstream.plan.frames import FrameDecoder
from tripstream.plan.reconciler import PlanReconciler
from tripstream.plan.response_parser import PlanParseError, parse_plan_response
from tripstream.shared.logging.config import truncate


logger = logging.getLogger(__name__)

ErrorCallback = Callable[[str], None]


class PlanningSession:
    """
    Dispatcher for one planning turn at a time.

    Usage:
        session = PlanningSession(nights=2)
        session.begin_turn()
        for chunk in body:
            session.feed(chunk)
        session.flush()
        session.reconciler.document
    """

    def __init__(
        self,
        reconciler: Optional[PlanReconciler] = None,
        config: Optional[PlanConfig] = None,
        nights: Optional[int] = None,
        on_error: Optional[ErrorCallback] = None,
    ):
        """
        Initialize the session.

        Args:
            reconciler: Document owner; a new one is created if omitted
            config: Capacity bounds (defaults to the reconciler's)
            nights: Trip length, used to size the backfill pool
            on_error: Called with a message for parse and stream errors
        """
        self.reconciler = reconciler or PlanReconciler(config)
        self.config = config or self.reconciler.config
        self.nights = nights
        self.on_error = on_error

        self.reply_text = ""
        self.errors: List[str] = []
        self.stream_error: Optional[str] = None
        self.note: Optional[str] = None

        self._decoder = FrameDecoder(on_frame=self.handle_event)
        self._json_buffer = ""
        self._cancelled = False
        self._handlers: Dict[str, Callable[[str], None]] = {
            "jsonDelta": self._on_json_delta,
            "jsonFinal": self._on_json_final,
            "planImage": self._on_plan_image,
            "planImageError": self._on_plan_image_error,
            "error": self._on_stream_error,
            "replyDelta": self._on_reply_delta,
        }

    # ------------------------------------------------------------------
    # Turn lifecycle
    # ------------------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def json_buffer(self) -> str:
        return self._json_buffer

    def begin_turn(self) -> int:
        """Reset per-turn state and the reconciler's document."""
        self._decoder = FrameDecoder(on_frame=self.handle_event)
        self._json_buffer = ""
        self._cancelled = False
        self.reply_text = ""
        self.errors = []
        self.stream_error = None
        self.note = None
        return self.reconciler.begin_turn()

    def feed(self, chunk: str) -> None:
        """Decode a body chunk and dispatch the frames it completes."""
        if self._cancelled:
            return
        self._decoder.feed(chunk)

    def flush(self) -> None:
        """End of stream: an unterminated trailing frame is dropped."""
        if self._cancelled:
            return
        self._decoder.flush()

    def cancel(self) -> None:
        """Stop handling frames; the document keeps its last committed state."""
        if not self._cancelled:
            logger.info(f"[turn={self.reconciler.turn}] [session] Turn cancelled")
        self._cancelled = True

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def handle_event(self, event_type: str, payload: str) -> None:
        if self._cancelled:
            return
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.debug(f"[turn={self.reconciler.turn}] [session] Ignoring event {event_type!r}")
            return
        handler(payload)

    def _record_error(self, message: str) -> None:
        self.errors.append(message)
        logger.warning(f"[turn={self.reconciler.turn}] [session] {message}")
        if self.on_error is not None:
            self.on_error(message)

    def _apply_reply(self, text: str) -> None:
        if text.startswith(self.reply_text):
            self.reply_text += text[len(self.reply_text):]
        else:
            self.reply_text = text

    def _on_json_delta(self, payload: str) -> None:
        if self.reconciler.finalized:
            return
        self._json_buffer += payload

        # The buffer only parses once the document is complete
        try:
            whole = json.loads(self._json_buffer)
        except json.JSONDecodeError:
            whole = None
        if isinstance(whole, dict) and isinstance(whole.get("replyText"), str):
            self._apply_reply(whole["replyText"])

        days = extract_completed_days(self._json_buffer)
        if days:
            self.reconciler.merge_progress(days)

    def _on_json_final(self, payload: str) -> None:
        try:
            parsed = parse_plan_response(payload)
        except PlanParseError as e:
            logger.debug(
                f"[turn={self.reconciler.turn}] [session] Bad final payload: {truncate(payload)}"
            )
            self._record_error(f"Invalid final plan: {e}")
            return

        self._json_buffer = ""
        if parsed.reply_text:
            self._apply_reply(parsed.reply_text)
        self.note = parsed.note

        fallback = suggestions_to_days(parsed.suggestions, self.nights, self.config)
        days = parsed.plan_days or fallback
        result = self.reconciler.finalize(days, fallback or None)
        logger.info(
            f"[turn={self.reconciler.turn}] [session] Plan finalized | "
            f"days={len(result.days)}, underfilled={result.underfilled_days}"
        )

    def _on_plan_image(self, payload: str) -> None:
        try:
            data: Any = json.loads(payload)
        except json.JSONDecodeError:
            logger.info(f"[turn={self.reconciler.turn}] [session] Malformed planImage payload")
            return
        if not isinstance(data, dict):
            return

        day = data.get("dayIdx")
        index = data.get("itemIdx")
        image_url = data.get("image_url")
        if not isinstance(day, int) or not isinstance(index, int) or not isinstance(image_url, str):
            logger.info(f"[turn={self.reconciler.turn}] [session] Incomplete planImage payload")
            return

        title = data.get("title") if isinstance(data.get("title"), str) else None
        self.reconciler.apply_item_patch(day, index, {"image_url": image_url}, title=title)

    def _on_plan_image_error(self, payload: str) -> None:
        logger.info(
            f"[turn={self.reconciler.turn}] [session] Image lookup failed: {truncate(payload, 200)}"
        )

    def _on_stream_error(self, payload: str) -> None:
        message = payload
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict) and isinstance(data.get("error"), str):
            message = data["error"]
        self.stream_error = message or "Stream error"
        self._record_error(self.stream_error)

    def _on_reply_delta(self, payload: str) -> None:
        self.reply_text += payload
