from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gassafe.config import settings
from gassafe.email.service import EmailNotConfiguredError
from gassafe.models import Lead
from gassafe.services.formatting import format_date, format_price, parse_price
from gassafe.services.leads import (
    JoinedBooking,
    get_joined_booking,
    list_active_leads,
    list_confirmed_bookings,
    set_quoted_price,
    soft_delete_leads,
)

logger = logging.getLogger("gassafe.services.workspace")

LOAD_FAILED_MESSAGE = "Could not load records. Please refresh to try again."
QUOTE_INVALID_MESSAGE = "Enter a price and select at least one lead."
QUOTE_FAILED_MESSAGE = "Failed to apply quote. Please try again."
DELETE_UNCONFIRMED_MESSAGE = "Select at least one lead and confirm the deletion."
DELETE_FAILED_MESSAGE = "Failed to delete leads. Please try again."


class EmailDispatchStatus(str, Enum):
    SENT = "sent"
    FALLBACK = "fallback"
    IN_FLIGHT = "in_flight"
    MISSING_DETAILS = "missing_details"


@dataclass
class EmailDispatch:
    status: EmailDispatchStatus
    lead_id: str
    mailto: Optional[str] = None
    message: Optional[str] = None


@dataclass
class BatchResult:
    applied: bool
    affected_ids: List[str] = field(default_factory=list)
    message: Optional[str] = None


@dataclass
class WorkspaceNotice:
    message: str
    mailto: Optional[str] = None
    level: str = "info"


@dataclass
class WorkspaceSnapshot:
    leads: List[Lead] = field(default_factory=list)
    bookings: List[JoinedBooking] = field(default_factory=list)
    leads_error: Optional[str] = None
    bookings_error: Optional[str] = None
    generation: int = 0


class AdminWorkspace:
    """
    Per-admin working state over the leads table.

    Holds the selection set, the batch price input, rows recently quoted
    (highlighted for a short window), leads with a quote email in flight,
    and the last loaded snapshot. Selection only ever contains ids of the
    currently loaded leads.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        highlight_seconds: Optional[float] = None,
    ) -> None:
        self._clock = clock
        self._highlight_seconds = (
            settings.quote_highlight_seconds if highlight_seconds is None else highlight_seconds
        )
        self._lock = threading.Lock()
        self._selected: Set[str] = set()
        self._highlights: Dict[str, float] = {}
        self._in_flight: Set[str] = set()
        self._issued_generation = 0
        self.price_input: str = ""
        self._notice: Optional[WorkspaceNotice] = None
        self.snapshot = WorkspaceSnapshot()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _fetch(self, db: Session, loader: Callable[[Session], List[Any]], label: str) -> Tuple[Optional[List[Any]], Optional[str]]:
        try:
            return loader(db), None
        except SQLAlchemyError:
            logger.exception("Failed to load %s for admin workspace", label)
            db.rollback()
            return None, LOAD_FAILED_MESSAGE

    def load_data(self, db: Session) -> WorkspaceSnapshot:
        """
        Fetch active leads and confirmed bookings independently.

        A failed fetch keeps the previously loaded rows for that list and
        reports the error on the snapshot; the other list still refreshes.
        """
        with self._lock:
            self._issued_generation += 1
            generation = self._issued_generation

        leads, leads_error = self._fetch(db, list_active_leads, "leads")
        bookings, bookings_error = self._fetch(db, list_confirmed_bookings, "confirmed bookings")

        self.apply_snapshot(
            WorkspaceSnapshot(
                leads=leads if leads is not None else list(self.snapshot.leads),
                bookings=bookings if bookings is not None else list(self.snapshot.bookings),
                leads_error=leads_error,
                bookings_error=bookings_error,
                generation=generation,
            ),
            leads_loaded=leads is not None,
        )
        return self.snapshot

    def apply_snapshot(self, snapshot: WorkspaceSnapshot, *, leads_loaded: bool = True) -> bool:
        """Apply a loaded snapshot unless a newer load already landed."""
        with self._lock:
            if snapshot.generation < self.snapshot.generation:
                logger.debug(
                    "Ignoring stale workspace load (generation=%s, current=%s)",
                    snapshot.generation,
                    self.snapshot.generation,
                )
                return False
            self.snapshot = snapshot
            if leads_loaded:
                known = {lead.id for lead in snapshot.leads}
                self._selected &= known
        logger.info(
            "Workspace loaded (generation=%s, leads=%d, bookings=%d)",
            snapshot.generation,
            len(snapshot.leads),
            len(snapshot.bookings),
        )
        return True

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def lead_ids(self) -> List[str]:
        return [lead.id for lead in self.snapshot.leads]

    @property
    def selected(self) -> Set[str]:
        return set(self._selected)

    @property
    def all_selected(self) -> bool:
        ids = set(self.lead_ids)
        return bool(ids) and self._selected == ids

    def toggle_one(self, lead_id: str) -> bool:
        """Flip membership of one loaded lead. Returns the new membership."""
        if lead_id not in self.lead_ids:
            logger.warning("Ignoring toggle for unknown lead id=%s", lead_id)
            return False
        with self._lock:
            if lead_id in self._selected:
                self._selected.discard(lead_id)
                return False
            self._selected.add(lead_id)
            return True

    def toggle_all(self) -> None:
        """Select every loaded lead, or clear if everything is already selected."""
        with self._lock:
            ids = {lead.id for lead in self.snapshot.leads}
            if ids and self._selected == ids:
                self._selected.clear()
            else:
                self._selected = ids

    def select(self, lead_ids: Iterable[str]) -> None:
        """Replace the selection; unknown ids are dropped."""
        known = set(self.lead_ids)
        with self._lock:
            self._selected = {lead_id for lead_id in lead_ids if lead_id in known}

    def clear_selection(self) -> None:
        with self._lock:
            self._selected.clear()

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    def apply_batch_quote(self, db: Session, price: Optional[str] = None) -> BatchResult:
        """
        Set quoted_price on every selected lead with one bulk update.

        No database call happens when the price is blank/invalid or nothing
        is selected. On failure the selection and price input are kept.
        """
        if price is not None:
            self.price_input = str(price)

        amount = parse_price(self.price_input)
        ids = sorted(self._selected)
        if amount is None or not ids:
            return BatchResult(applied=False, message=QUOTE_INVALID_MESSAGE)

        try:
            set_quoted_price(db, ids, amount)
        except SQLAlchemyError:
            return BatchResult(applied=False, affected_ids=ids, message=QUOTE_FAILED_MESSAGE)

        expires_at = self._clock() + self._highlight_seconds
        with self._lock:
            for lead_id in ids:
                self._highlights[lead_id] = expires_at
            self._selected.clear()
        self.price_input = ""

        for lead in self.snapshot.leads:
            if lead.id in ids:
                lead.quoted_price = amount

        return BatchResult(applied=True, affected_ids=ids)

    def delete_selected(self, db: Session, confirmed: bool) -> BatchResult:
        """Soft-delete the selection (deleted_at stamp), then reload."""
        ids = sorted(self._selected)
        if not confirmed or not ids:
            return BatchResult(applied=False, message=DELETE_UNCONFIRMED_MESSAGE)

        try:
            soft_delete_leads(db, ids)
        except SQLAlchemyError:
            return BatchResult(applied=False, affected_ids=ids, message=DELETE_FAILED_MESSAGE)

        self.clear_selection()
        self.load_data(db)
        return BatchResult(applied=True, affected_ids=ids)

    # ------------------------------------------------------------------
    # Quote highlight
    # ------------------------------------------------------------------

    def highlighted_ids(self) -> Set[str]:
        now = self._clock()
        with self._lock:
            self._highlights = {
                lead_id: expires_at
                for lead_id, expires_at in self._highlights.items()
                if expires_at > now
            }
            return set(self._highlights)

    def is_highlighted(self, lead_id: str) -> bool:
        return lead_id in self.highlighted_ids()

    # ------------------------------------------------------------------
    # Quote email
    # ------------------------------------------------------------------

    def is_sending(self, lead_id: str) -> bool:
        return lead_id in self._in_flight

    def send_quote_email(self, lead: Lead, notifier: Any) -> EmailDispatch:
        """
        Dispatch the quote email for one lead through `notifier`.

        A second dispatch for the same lead is refused while the first is
        outstanding. Any notifier failure degrades to a mailto link.
        """
        if not lead.client_email or lead.quoted_price is None:
            return EmailDispatch(
                status=EmailDispatchStatus.MISSING_DETAILS,
                lead_id=lead.id,
                message="Set a quote and client email before sending.",
            )

        with self._lock:
            if lead.id in self._in_flight:
                return EmailDispatch(
                    status=EmailDispatchStatus.IN_FLIGHT,
                    lead_id=lead.id,
                    message="A quote email for this lead is already being sent.",
                )
            self._in_flight.add(lead.id)

        try:
            notifier.send_quote_email(lead)
        except EmailNotConfiguredError as exc:
            logger.warning("Quote email not configured for lead=%s: %s", lead.id, exc)
            return self._fallback(lead, notifier, "Email is not configured.")
        except Exception as exc:  # noqa: BLE001
            logger.exception("Quote email failed for lead=%s: %s", lead.id, exc)
            return self._fallback(lead, notifier, "Failed to send email.")
        finally:
            with self._lock:
                self._in_flight.discard(lead.id)

        return EmailDispatch(
            status=EmailDispatchStatus.SENT,
            lead_id=lead.id,
            message=f"Quote sent to {lead.client_email}.",
        )

    def _fallback(self, lead: Lead, notifier: Any, reason: str) -> EmailDispatch:
        return EmailDispatch(
            status=EmailDispatchStatus.FALLBACK,
            lead_id=lead.id,
            mailto=notifier.generate_mailto_link(lead),
            message=f"{reason} Open it in your mail client instead.",
        )

    # ------------------------------------------------------------------
    # Notices
    # ------------------------------------------------------------------

    def flash(self, message: Optional[str], *, mailto: Optional[str] = None, level: str = "info") -> None:
        """Queue one notice for the next render of the workspace page."""
        if message:
            self._notice = WorkspaceNotice(message=message, mailto=mailto, level=level)

    def pop_notice(self) -> Optional[WorkspaceNotice]:
        notice, self._notice = self._notice, None
        return notice

    # ------------------------------------------------------------------
    # Detail view
    # ------------------------------------------------------------------

    def booking_detail(self, db: Session, booking_id: str) -> Optional[JoinedBooking]:
        return get_joined_booking(db, booking_id)


def format_booking_details(booking: JoinedBooking) -> str:
    """Fixed plain-text layout used by 'copy all details'."""
    lines = [
        f"Property Address: {booking.address}",
        f"Certificate Expiry: {format_date(booking.expiry_date)}",
        f"Quoted Price: {format_price(booking.quoted_price)}",
        f"Client Email: {booking.client_email}",
        f"Contact Name: {booking.contact_name}",
        f"Contact Phone: {booking.contact_phone or 'Not provided'}",
        f"Contact Email: {booking.contact_email or 'Not provided'}",
        f"Confirmed At: {format_date(booking.created_at)}",
    ]
    return "\n".join(lines)


class WorkspaceRegistry:
    """
    One AdminWorkspace per admin session id.

    Sessions that end without a logout (expired cookie, cleared browser)
    leave their workspace behind; any entry idle for longer than the session
    max age can no longer be reached and is evicted on the next get().
    """

    def __init__(
        self,
        factory: Callable[[], AdminWorkspace] = AdminWorkspace,
        *,
        clock: Callable[[], float] = time.monotonic,
        idle_seconds: Optional[float] = None,
    ) -> None:
        self._factory = factory
        self._clock = clock
        self._idle_seconds = (
            settings.admin_session_max_age_seconds if idle_seconds is None else idle_seconds
        )
        self._lock = threading.Lock()
        self._workspaces: Dict[str, AdminWorkspace] = {}
        self._last_used: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._workspaces)

    def _evict_idle(self, now: float) -> None:
        stale = [
            session_id
            for session_id, last_used in self._last_used.items()
            if now - last_used > self._idle_seconds
        ]
        for session_id in stale:
            self._workspaces.pop(session_id, None)
            self._last_used.pop(session_id, None)
        if stale:
            logger.info("Evicted %d idle admin workspace(s)", len(stale))

    def get(self, session_id: str) -> AdminWorkspace:
        now = self._clock()
        with self._lock:
            self._evict_idle(now)
            workspace = self._workspaces.get(session_id)
            if workspace is None:
                workspace = self._factory()
                self._workspaces[session_id] = workspace
                logger.debug("Created admin workspace for session=%s", session_id[:6])
            self._last_used[session_id] = now
            return workspace

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._workspaces.pop(session_id, None)
            self._last_used.pop(session_id, None)

    def clear(self) -> None:
        with self._lock:
            self._workspaces.clear()
            self._last_used.clear()


registry = WorkspaceRegistry()
