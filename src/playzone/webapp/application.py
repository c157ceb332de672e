"""Front-desk console for the PlayZone indoor playground.

Every page is rendered on the server from rows fetched through the injected
:class:`~playzone.client.PlayZoneBackend`. Nothing is persisted here; the
remote API owns parents, sessions, prices and rewards.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from html import escape as html_escape
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from fastapi import APIRouter, FastAPI, Form, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.middleware.sessions import SessionMiddleware

from ..api import ApiExporter
from ..client import ApiClient, PlayZoneBackend
from ..earnings import (
    METHOD_FILTERS,
    PERIODS,
    earning_rows,
    filter_earnings,
    summarize_earnings,
    total,
)
from ..exceptions import NotFoundError, PlayZoneError, ValidationError
from ..memory import InMemoryBackend
from ..models import ChildInput, ParentDetail, PaymentMethod, Session
from ..money import format_currency
from ..ops import HealthMonitor, StructuredLogger
from ..polling import PollSnapshot, describe_error
from ..settings import ConsoleSettings, PricingSettings, SettingsStore, ShopSettings
from ..timing import (
    LAST_MINUTES_WARNING,
    format_duration,
    format_time_label,
    plan_session_end,
    to_epoch_ms,
)
from ..views import (
    BoardCard,
    board_cards,
    dashboard_summary,
    payment_label,
    session_counts,
    session_detail,
    session_rows,
)
from .config import (
    API_BASE_URL,
    API_TIMEOUT,
    BACKEND_KIND,
    BOARD_POLL_SECONDS,
    DEFAULT_SESSION_MINUTES,
    LIST_POLL_SECONDS,
    LIVE_BOARD_JS,
    LIVE_REGION_HEADER,
    LIVE_REGION_JS,
    LOG_PATH,
    MAX_CHILDREN,
    SESSION_RANGE_FILTERS,
    SESSION_SECRET,
    SESSION_STATUS_FILTERS,
    SHOP_CLOSE_HOUR,
    SHOP_OPEN_HOUR,
)

router = APIRouter()
_exporter = ApiExporter()


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------
def backend_of(request: Request) -> PlayZoneBackend:
    return request.app.state.backend


def logger_of(request: Request) -> StructuredLogger:
    return request.app.state.logger


def settings_of(request: Request) -> ConsoleSettings:
    return request.app.state.settings.current


def now_local(request: Request) -> datetime:
    """Return naive local time using the configured provider."""

    return request.app.state.clock()


def now_ms(request: Request) -> int:
    return int(now_local(request).timestamp() * 1000)


def set_notice(request: Request, message: str, kind: str = "info") -> None:
    request.session["notice"] = message
    request.session["notice_kind"] = kind


def pop_notice(request: Request) -> Tuple[Optional[str], str]:
    message = request.session.pop("notice", None)
    kind = request.session.pop("notice_kind", "info")
    return message, kind


def report_error(request: Request, exc: PlayZoneError, fallback: str, **fields: object) -> str:
    message = describe_error(exc, fallback)
    logger_of(request).log("api_error", error=message, status=exc.status, **fields)
    return message


def banner(message: Optional[str], kind: str = "error") -> str:
    if not message:
        return ""
    return f"<div class='banner banner--{html_escape(kind)}'>{html_escape(message)}</div>"


def notice_html(request: Request) -> str:
    message, kind = pop_notice(request)
    return banner(message, kind)


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------
NAV_LINKS: Tuple[Tuple[str, str, str], ...] = (
    ("dashboard", "/", "Dashboard"),
    ("start", "/sessions/start", "Start session"),
    ("sessions", "/sessions", "Sessions"),
    ("parents", "/parents", "Parents"),
    ("register", "/parents/new", "Register"),
    ("earnings", "/earnings", "Earnings"),
    ("display", "/display", "Display board"),
    ("settings", "/settings", "Settings"),
)


def base_styles() -> str:
    return """
    <style>
      :root{
        --bg:#f1f5f9; --card:#ffffff; --muted:#64748b; --accent:#0ea5e9;
        --good:#16a34a; --bad:#dc2626; --warn:#d97706; --text:#0f172a;
      }
      body{font-family:system-ui,-apple-system,Segoe UI,Roboto,Arial; background:var(--bg); color:var(--text); margin:0;}
      .layout{display:grid; grid-template-columns:200px 1fr; gap:16px; max-width:1280px; margin:0 auto; padding:24px 16px;}
      .layout .content{min-width:0;}
      .sidebar{display:flex; flex-direction:column; gap:6px; position:sticky; top:24px; align-self:flex-start;}
      .sidebar a{display:block; padding:10px 12px; border-radius:10px; text-decoration:none; color:var(--text); background:rgba(15,23,42,0.04);}
      .sidebar a.active{background:var(--accent); color:#fff;}
      .grid{display:grid; grid-template-columns:repeat(auto-fit,minmax(220px,1fr)); gap:16px;}
      .card{background:var(--card); border-radius:12px; padding:16px; box-shadow:0 8px 20px rgba(0,0,0,.06); margin:12px 0;}
      .stat-card__label{font-size:12px; color:var(--muted); text-transform:uppercase; letter-spacing:0.04em;}
      .stat-card__value{font-size:26px; font-weight:700;}
      .stat-card__meta{font-size:13px; color:var(--muted);}
      input,select,textarea{width:100%; padding:10px; border:1px solid #cbd5e1; border-radius:8px; box-sizing:border-box; font-size:15px;}
      input[type=checkbox]{width:auto; margin:0 6px 0 0;}
      button,.button-link{display:inline-flex; align-items:center; padding:10px 14px; border-radius:10px; border:0; background:var(--accent); color:#fff; cursor:pointer; text-decoration:none; font-weight:600;}
      .button-link.secondary{background:rgba(15,23,42,0.08); color:var(--text);}
      button[disabled]{opacity:.5; cursor:not-allowed;}
      table{width:100%; border-collapse:collapse;}
      th,td{padding:10px; border-bottom:1px solid #e2e8f0; text-align:left; vertical-align:top;}
      .right{text-align:right;}
      .muted{color:var(--muted);}
      .pill{display:inline-block; padding:3px 8px; border-radius:999px; font-size:12px; background:#e2e8f0;}
      .pill--active{background:#dcfce7; color:#166534;}
      .pill--completed{background:#e2e8f0; color:#334155;}
      .pill--warning{background:#fee2e2; color:#b91c1c;}
      .pill--finished{background:#e2e8f0; color:#475569;}
      .banner{padding:10px 14px; border-radius:10px; margin:10px 0; font-size:14px;}
      .banner--error{background:#fee2e2; border-left:4px solid #fca5a5; color:#b91c1c;}
      .banner--warning{background:#fef3c7; border-left:4px solid #fcd34d; color:#92400e;}
      .banner--success{background:#dcfce7; border-left:4px solid #86efac; color:#166534;}
      .banner--info{background:#e0f2fe; border-left:4px solid #7dd3fc; color:#075985;}
      .stacked-form{display:flex; flex-direction:column; gap:8px;}
      .stacked-form label{font-weight:600;}
      .actions{display:flex; gap:8px; flex-wrap:wrap; align-items:center;}
      .filters{display:flex; gap:12px; flex-wrap:wrap; align-items:flex-end;}
      .filters > *{flex:0 1 200px;}
      .child-row{display:grid; grid-template-columns:2fr 1fr; gap:8px;}
      @media (max-width: 800px){ .layout{grid-template-columns:1fr;} .sidebar{position:static; flex-direction:row; flex-wrap:wrap;} }
    </style>
    """


def board_styles() -> str:
    return """
    <style>
      body{background:#0f172a; color:#f8fafc; font-family:system-ui,-apple-system,Segoe UI,Roboto,Arial; margin:0;}
      .board-header{display:flex; justify-content:space-between; align-items:center; padding:16px 32px; border-bottom:1px solid #1e293b;}
      .board-header h1{margin:0; font-size:24px;}
      .board-header p{margin:4px 0 0; color:#94a3b8; font-size:13px;}
      #board-error{color:#f87171; font-size:13px; margin-top:6px;}
      #board-clock{font-family:ui-monospace,Menlo,monospace; font-size:18px;}
      #board{display:grid; grid-template-columns:repeat(auto-fit,minmax(300px,1fr)); gap:20px; padding:24px 32px; max-width:1200px; margin:0 auto;}
      .board-empty{color:#64748b; font-size:18px; text-align:center; grid-column:1/-1;}
      .board-card{border:1px solid #334155; border-radius:18px; padding:20px; background:#1e293b;}
      .board-card--warning{border-color:#ef4444;}
      .board-card--warning .board-card__clock{color:#f87171;}
      .board-card--finished .board-card__clock{color:#64748b;}
      .board-card__name{font-size:20px; font-weight:700;}
      .board-card__meta{color:#94a3b8; font-size:14px; margin-top:4px;}
      .board-card__status{margin-top:10px; font-size:12px; text-transform:uppercase; letter-spacing:0.06em; color:#94a3b8;}
      .board-card__clock{font-family:ui-monospace,Menlo,monospace; font-size:40px; color:#7dd3fc; margin-top:6px;}
    </style>
    """


def nav_html(active: str) -> str:
    links = []
    for key, href, label in NAV_LINKS:
        css = " class='active'" if key == active else ""
        links.append(f"<a href='{href}'{css}>{label}</a>")
    return "<nav class='sidebar'>" + "".join(links) + "</nav>"


def frame(title: str, inner: str, head_extra: str = "") -> str:
    return (
        "<html><head><meta charset='utf-8'><meta name='viewport' "
        f"content='width=device-width,initial-scale=1'>{head_extra}<title>{html_escape(title)}</title>"
        f"</head><body>{inner}</body></html>"
    )


def render_page(
    request: Request,
    title: str,
    inner: str,
    *,
    active: str = "",
    head_extra: str = "",
    status_code: int = 200,
) -> HTMLResponse:
    shop_name = html_escape(settings_of(request).shop.name)
    body = (
        f"<div class='layout'><div>{nav_html(active)}<p class='muted' style='font-size:12px;'>{shop_name}</p></div>"
        f"<main class='content'>{notice_html(request)}{inner}</main></div>"
    )
    html = frame(title, body, head_extra=base_styles() + head_extra)
    return HTMLResponse(html, status_code=status_code)


def not_found_page(request: Request, title: str, message: str, back_href: str, back_label: str) -> HTMLResponse:
    inner = f"""
    <div class='card'>
      <h2>{html_escape(title)}</h2>
      <p class='muted'>{html_escape(message)}</p>
      <a class='button-link secondary' href='{back_href}'>{html_escape(back_label)}</a>
    </div>
    """
    return render_page(request, title, inner, status_code=404)


def status_pill(status: str) -> str:
    return f"<span class='pill pill--{html_escape(status)}'>{html_escape(status)}</span>"


def countdown_pill(card: BoardCard) -> str:
    state = card.countdown.state
    if state == "finished":
        return "<span class='pill pill--finished'>Finished</span>"
    label = f"{card.countdown.remaining_minutes} min left"
    css = "pill--warning" if state == "warning" else "pill--active"
    return f"<span class='pill {css}'>{html_escape(label)}</span>"


def children_label(count: int) -> str:
    return f"{count} child" if count == 1 else f"{count} children"


def _options(values: Iterable[Tuple[str, str]], selected: str) -> str:
    return "".join(
        f"<option value='{html_escape(value)}'{' selected' if value == selected else ''}>{html_escape(label)}</option>"
        for value, label in values
    )


def _flag(value: Optional[str]) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "on", "yes"}


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------
@router.get("/", response_class=HTMLResponse)
def dashboard(request: Request) -> HTMLResponse:
    error: Optional[str] = None
    rows: List[Session] = []
    try:
        rows = backend_of(request).list_sessions(range="today")
    except PlayZoneError as exc:
        error = report_error(request, exc, "Failed to load sessions", page="dashboard")
    moment = now_local(request)
    summary = dashboard_summary(rows, moment.date(), now_ms(request))
    active_rows = "".join(
        f"<tr><td><a href='/sessions/{card.session_id}'>{html_escape(card.parent_name)}</a></td>"
        f"<td>{card.children_count}</td><td>{html_escape(card.start_label)}</td>"
        f"<td>{html_escape(card.end_label)}</td><td>{countdown_pill(card)}</td></tr>"
        for card in summary.active_cards
    ) or "<tr><td colspan='5' class='muted'>No active sessions.</td></tr>"
    completed_rows = "".join(
        f"<tr><td><a href='/sessions/{row.session_id}'>{html_escape(row.parent_name)}</a></td>"
        f"<td>{row.children_count}</td><td>{html_escape(row.start_label)}</td>"
        f"<td>{html_escape(row.end_label)}</td><td>{html_escape(row.duration_text)}</td></tr>"
        for row in summary.completed_today
    ) or "<tr><td colspan='5' class='muted'>Nothing completed yet today.</td></tr>"
    inner = f"""
    <div class='actions' style='justify-content:space-between;'>
      <div><h2 style='margin:0;'>Dashboard</h2><p class='muted'>Today at a glance: active sessions, visitors and takings.</p></div>
      <div class='actions'>
        <a class='button-link' href='/sessions/start'>Start new session</a>
        <a class='button-link secondary' href='/display'>Open display board</a>
      </div>
    </div>
    {banner(error)}
    <div class='grid'>
      <div class='card'><div class='stat-card__label'>Active sessions now</div><div class='stat-card__value'>{summary.active_count}</div>
        <div class='stat-card__meta'>{html_escape(children_label(summary.children_inside))} currently inside.</div></div>
      <div class='card'><div class='stat-card__label'>Today's visitors</div><div class='stat-card__value'>{summary.visitors_today}</div>
        <div class='stat-card__meta'>Children across active and completed sessions.</div></div>
      <div class='card'><div class='stat-card__label'>Completed today</div><div class='stat-card__value'>{len(summary.completed_today)}</div>
        <div class='stat-card__meta'>{summary.discounts_today} with a discount applied.</div></div>
      <div class='card'><div class='stat-card__label'>Takings today</div><div class='stat-card__value'>{html_escape(format_currency(summary.takings_today, label=settings_of(request).shop.currency_label))}</div>
        <div class='stat-card__meta'>Server-priced completed sessions.</div></div>
    </div>
    <div class='card'>
      <h3>Active sessions</h3>
      <table><thead><tr><th>Parent</th><th>Children</th><th>Started</th><th>Ends</th><th>Time left</th></tr></thead>
      <tbody>{active_rows}</tbody></table>
    </div>
    <div class='card'>
      <h3>Completed today</h3>
      <table><thead><tr><th>Parent</th><th>Children</th><th>Start</th><th>End</th><th>Duration</th></tr></thead>
      <tbody>{completed_rows}</tbody></table>
    </div>
    """
    return render_page(request, "PlayZone | Dashboard", inner, active="dashboard")


# ---------------------------------------------------------------------------
# Parents
# ---------------------------------------------------------------------------
@router.get("/parents", response_class=HTMLResponse)
def parents_list(request: Request, q: str = Query("")) -> HTMLResponse:
    query = (q or "").strip()
    error: Optional[str] = None
    parents = []
    try:
        parents = backend_of(request).list_parents(query)
    except PlayZoneError as exc:
        error = report_error(request, exc, "Failed to load parents", page="parents")
    rows = "".join(
        f"<tr><td><a href='/parents/{parent.id}'>{html_escape(parent.name)}</a></td>"
        f"<td>{html_escape(parent.phone)}</td><td>{parent.children_count}</td>"
        f"<td class='right'><a href='/parents/{parent.id}'>View</a> · "
        f"<a href='/sessions/start?parent={parent.id}'>Start session</a></td></tr>"
        for parent in parents
    ) or "<tr><td colspan='4' class='muted'>No parents found.</td></tr>"
    inner = f"""
    <div class='actions' style='justify-content:space-between;'>
      <div><h2 style='margin:0;'>All parents</h2><p class='muted'>Registered parents. Click a parent to view the full profile.</p></div>
      <div class='muted'>Total parents: <strong>{len(parents)}</strong></div>
    </div>
    {banner(error)}
    <div class='card'>
      <form method='get' action='/parents' class='filters'>
        <div><label>Search</label><input name='q' value='{html_escape(query)}' placeholder='Name or WhatsApp number'></div>
        <div><button type='submit'>Search</button></div>
      </form>
      <table><thead><tr><th>Parent name</th><th>WhatsApp</th><th>Children</th><th class='right'>Actions</th></tr></thead>
      <tbody>{rows}</tbody></table>
    </div>
    """
    return render_page(request, "PlayZone | Parents", inner, active="parents")


def registration_form(
    request: Request,
    *,
    name: str = "",
    phone: str = "",
    children: Sequence[Tuple[str, str]] = (),
    error: Optional[str] = None,
    status_code: int = 200,
) -> HTMLResponse:
    padded = list(children)[:MAX_CHILDREN]
    if not padded:
        padded = [("", "")]
    while len(padded) < MAX_CHILDREN:
        padded.append(("", ""))
    child_inputs = "".join(
        f"<div class='child-row'><input name='child_name' value='{html_escape(child_name)}' placeholder='Child {index} name'>"
        f"<input name='child_age' value='{html_escape(child_age)}' placeholder='Age' inputmode='numeric'></div>"
        for index, (child_name, child_age) in enumerate(padded, start=1)
    )
    inner = f"""
    <h2>Registration</h2>
    <p class='muted'>Register a parent and their children before starting a play session.</p>
    {banner(error)}
    <div class='card'>
      <form method='post' action='/parents' class='stacked-form'>
        <label>Parent name</label><input name='name' value='{html_escape(name)}' required>
        <label>WhatsApp number</label><input name='phone' value='{html_escape(phone)}' required>
        <label>Children (up to {MAX_CHILDREN})</label>
        {child_inputs}
        <div class='actions'><button type='submit'>Save registration</button>
        <a class='button-link secondary' href='/parents'>Cancel</a></div>
      </form>
    </div>
    """
    return render_page(request, "PlayZone | Register", inner, active="register", status_code=status_code)


def parse_children(names: Sequence[str], ages: Sequence[str]) -> List[ChildInput]:
    """Children from the registration form; rows without a name are skipped."""

    children: List[ChildInput] = []
    for index, raw_name in enumerate(names):
        child_name = (raw_name or "").strip()
        if not child_name:
            continue
        raw_age = (ages[index] if index < len(ages) else "") or ""
        raw_age = raw_age.strip()
        age: Optional[int] = None
        if raw_age:
            try:
                age = int(raw_age)
            except ValueError as exc:
                raise ValidationError(f"Age for {child_name} must be a whole number") from exc
            if not 0 <= age <= 17:
                raise ValidationError(f"Age for {child_name} must be between 0 and 17")
        children.append(ChildInput(name=child_name, age=age))
    if len(children) > MAX_CHILDREN:
        raise ValidationError(f"A parent can register at most {MAX_CHILDREN} children")
    return children


@router.get("/parents/new", response_class=HTMLResponse)
def register_page(request: Request) -> HTMLResponse:
    return registration_form(request)


@router.post("/parents")
def register_parent(
    request: Request,
    name: str = Form(""),
    phone: str = Form(""),
    child_name: List[str] = Form([]),
    child_age: List[str] = Form([]),
):
    cleaned_name = (name or "").strip()
    cleaned_phone = (phone or "").strip()
    entered = list(zip(child_name, list(child_age) + [""] * (len(child_name) - len(child_age))))

    def _retry(message: str) -> HTMLResponse:
        return registration_form(
            request,
            name=cleaned_name,
            phone=cleaned_phone,
            children=entered,
            error=message,
            status_code=400,
        )

    try:
        if not cleaned_name:
            raise ValidationError("Parent name is required")
        if not cleaned_phone:
            raise ValidationError("WhatsApp number is required")
        children = parse_children(child_name, child_age)
        if not children:
            raise ValidationError("Add at least one child")
    except ValidationError as exc:
        return _retry(exc.message)
    try:
        parent = backend_of(request).create_parent(cleaned_name, cleaned_phone, children)
    except PlayZoneError as exc:
        return _retry(report_error(request, exc, "Failed to save registration", page="register"))
    logger_of(request).log("parent_registered", parent_id=parent.id, children=len(children))
    set_notice(request, f"Registered {cleaned_name} with {children_label(len(children))}.", "success")
    target = f"/parents/{parent.id}" if parent.id else "/parents"
    return RedirectResponse(target, status_code=302)


def _reward_cards(parent: ParentDetail) -> str:
    rewards = parent.rewards
    if rewards.is_empty:
        return "<p class='muted'>Reward figures are not available from the server yet.</p>"

    def _value(value: Optional[int]) -> str:
        return "-" if value is None else str(value)

    total_played = "-" if rewards.total_minutes is None else format_duration(rewards.total_minutes)
    if rewards.next_reward_in_minutes is None:
        next_reward = "-"
    elif rewards.next_reward_in_minutes <= 0:
        next_reward = "Reward ready"
    else:
        next_reward = format_duration(rewards.next_reward_in_minutes)
    return f"""
    <div class='grid'>
      <div><div class='stat-card__label'>Total played</div><div class='stat-card__value'>{html_escape(total_played)}</div></div>
      <div><div class='stat-card__label'>Sessions</div><div class='stat-card__value'>{_value(rewards.total_sessions)}</div></div>
      <div><div class='stat-card__label'>Rewards earned</div><div class='stat-card__value'>{_value(rewards.rewards_earned)}</div>
        <div class='stat-card__meta'>Available {_value(rewards.rewards_available)} · used {_value(rewards.rewards_used)}</div></div>
      <div><div class='stat-card__label'>Next reward in</div><div class='stat-card__value'>{html_escape(next_reward)}</div></div>
    </div>
    """


@router.get("/parents/{parent_id}", response_class=HTMLResponse)
def parent_detail(request: Request, parent_id: int) -> HTMLResponse:
    try:
        parent = backend_of(request).get_parent(parent_id)
    except NotFoundError:
        return not_found_page(request, "Parent not found", "No parent matches this id.", "/parents", "Back to parents")
    except PlayZoneError as exc:
        message = report_error(request, exc, "Failed to load parent", page="parent_detail")
        return render_page(request, "PlayZone | Parent", banner(message), active="parents", status_code=502)
    rewards = settings_of(request).rewards
    rewards_html = ""
    if rewards.enabled:
        note = f"<p class='muted'>{html_escape(rewards.note)}</p>" if rewards.note else ""
        rewards_html = f"<div class='card'><h3>Rewards &amp; playtime</h3>{_reward_cards(parent)}{note}</div>"
    moment_ms = now_ms(request)
    children_rows = "".join(
        f"<tr><td>{html_escape(child.name)}</td><td>{'-' if child.age is None else child.age}</td>"
        f"<td class='right'><a href='/sessions/start?parent={parent.id}&child={child.id}'>Start session</a></td></tr>"
        for child in parent.children
    ) or "<tr><td colspan='3' class='muted'>No children registered.</td></tr>"
    session_rows_html = "".join(
        f"<tr><td><a href='/sessions/{row.session_id}'>{row.session_id}</a></td><td>{html_escape(row.start_label)}</td>"
        f"<td>{html_escape(row.end_label)}</td><td>{html_escape(row.duration_text)}</td><td>{status_pill(row.status)}</td></tr>"
        for row in session_rows(parent.recent_sessions, moment_ms)
    ) or "<tr><td colspan='5' class='muted'>No sessions yet.</td></tr>"
    inner = f"""
    <div class='actions' style='justify-content:space-between;'>
      <div><h2 style='margin:0;'>{html_escape(parent.name)}</h2>
        <p class='muted'>WhatsApp: {html_escape(parent.phone)}</p></div>
      <a class='button-link' href='/sessions/start?parent={parent.id}'>Start session</a>
    </div>
    {rewards_html}
    <div class='card'>
      <h3>Children</h3>
      <table><thead><tr><th>Name</th><th>Age</th><th></th></tr></thead><tbody>{children_rows}</tbody></table>
    </div>
    <div class='card'>
      <h3>Recent sessions</h3>
      <table><thead><tr><th>#</th><th>Start</th><th>End</th><th>Duration</th><th>Status</th></tr></thead>
      <tbody>{session_rows_html}</tbody></table>
    </div>
    """
    return render_page(request, f"PlayZone | {parent.name}", inner, active="parents")


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
def _planned_end(request: Request) -> Tuple[datetime, datetime, int]:
    settings = settings_of(request)
    start = now_local(request)
    default_minutes = settings.pricing.default_session_minutes
    planned_end, minutes = plan_session_end(
        start,
        default_minutes=default_minutes,
        close_hour=settings.shop.close_hour,
    )
    if minutes <= 0:
        planned_end = start + timedelta(minutes=default_minutes)
    return start, planned_end, minutes


@router.get("/sessions/start", response_class=HTMLResponse)
def start_session_page(
    request: Request,
    q: str = Query(""),
    parent: Optional[int] = Query(None),
    child: Optional[int] = Query(None),
) -> HTMLResponse:
    backend = backend_of(request)
    settings = settings_of(request)
    query = (q or "").strip()
    error: Optional[str] = None
    suggestions_html = ""
    if query and parent is None:
        try:
            matches = backend.list_parents(query)
        except PlayZoneError as exc:
            matches = []
            error = report_error(request, exc, "Failed to search parents", page="start_session")
        suggestions_html = "".join(
            f"<li><a href='/sessions/start?parent={match.id}'>{html_escape(match.name)}</a> "
            f"<span class='muted'>{html_escape(match.phone)} · {html_escape(children_label(match.children_count))}</span></li>"
            for match in matches
        ) or "<li class='muted'>No matching parents.</li>"
        suggestions_html = f"<ul>{suggestions_html}</ul>"

    picked: Optional[ParentDetail] = None
    if parent is not None:
        try:
            picked = backend.get_parent(parent)
        except PlayZoneError as exc:
            error = report_error(request, exc, "Failed to load parent details", page="start_session")

    start, planned_end, minutes = _planned_end(request)
    effective = minutes if minutes > 0 else settings.pricing.default_session_minutes
    plan_note = (
        f"Starts {start.strftime('%H:%M')}, planned end {planned_end.strftime('%H:%M')} "
        f"({format_duration(effective)})."
    )
    if minutes <= 0:
        plan_note += " The shop is past closing time; the standard duration will be used."
    elif minutes < settings.pricing.default_session_minutes:
        plan_note += f" Capped at closing time {settings.shop.close_hour:02d}:00."

    picked_html = ""
    if picked is not None:
        selected = {child} if child is not None else {item.id for item in picked.children}
        boxes = "".join(
            f"<label><input type='checkbox' name='child_ids' value='{item.id}'{' checked' if item.id in selected else ''}>"
            f"{html_escape(item.name)}{'' if item.age is None else f' ({item.age})'}</label>"
            for item in picked.children
        ) or "<p class='muted'>This parent has no registered children.</p>"
        picked_html = f"""
        <div class='card'>
          <h3>{html_escape(picked.name)}</h3>
          <p class='muted'>WhatsApp: {html_escape(picked.phone)}</p>
          <form method='post' action='/sessions/start' class='stacked-form'>
            <input type='hidden' name='parent_id' value='{picked.id}'>
            <label>Children</label>
            {boxes}
            <p class='muted'>{html_escape(plan_note)}</p>
            <div class='actions'><button type='submit'>Start session</button></div>
          </form>
        </div>
        """
    inner = f"""
    <h2>Start play session</h2>
    <p class='muted'>Search parent, select children and start the timer. Shop hours
      {settings.shop.open_hour:02d}:00 – {settings.shop.close_hour:02d}:00. Now {start.strftime('%H:%M')}.</p>
    {banner(error)}
    <div class='card'>
      <form method='get' action='/sessions/start' class='filters'>
        <div><label>Search parent (name or WhatsApp number)</label>
          <input name='q' value='{html_escape(query or (picked.name if picked else ''))}'></div>
        <div><button type='submit'>Search</button></div>
      </form>
      {suggestions_html}
    </div>
    {picked_html}
    """
    return render_page(request, "PlayZone | Start session", inner, active="start")


@router.post("/sessions/start")
def start_session(
    request: Request,
    parent_id: str = Form(""),
    child_ids: List[str] = Form([]),
):
    raw_parent = (parent_id or "").strip()
    if not raw_parent.isdigit():
        set_notice(request, "Please select a parent first.", "error")
        return RedirectResponse("/sessions/start", status_code=302)
    back = f"/sessions/start?parent={raw_parent}"
    picked: List[int] = []
    for raw in child_ids:
        try:
            picked.append(int(raw))
        except (TypeError, ValueError):
            continue
    if not picked:
        set_notice(request, "Select at least one child.", "error")
        return RedirectResponse(back, status_code=302)
    start, _, minutes = _planned_end(request)
    planned_minutes = minutes if minutes > 0 else settings_of(request).pricing.default_session_minutes
    try:
        session = backend_of(request).start_session(
            int(raw_parent), picked, planned_minutes, start_time=start
        )
    except PlayZoneError as exc:
        set_notice(request, report_error(request, exc, "Failed to start session", page="start_session"), "error")
        return RedirectResponse(back, status_code=302)
    logger_of(request).log(
        "session_started",
        session_id=session.id,
        parent_id=int(raw_parent),
        children=len(picked),
        planned_minutes=planned_minutes,
    )
    ends = format_time_label(session.planned_end_time)
    set_notice(request, f"Session started for {children_label(len(picked))}. Planned end {ends}.", "success")
    return RedirectResponse("/sessions", status_code=302)


def _sessions_table(rows: Sequence[Session], moment_ms: int) -> str:
    views = session_rows(rows, moment_ms)
    by_id = {row.id: row for row in rows}
    body = []
    for view in views:
        row = by_id[view.session_id]
        live_attr = ""
        if row.is_active:
            start_ms = to_epoch_ms(row.start_time)
            if start_ms is not None:
                live_attr = f" data-elapsed-start-ms='{start_ms}'"
        body.append(
            f"<tr><td>{html_escape(view.parent_name)}</td><td>{view.children_count}</td>"
            f"<td>{html_escape(view.start_label)}</td><td>{html_escape(view.end_label)}</td>"
            f"<td{live_attr}>{html_escape(view.duration_text)}</td><td>{status_pill(view.status)}</td>"
            f"<td class='right'><a href='/sessions/{view.session_id}'>View</a></td></tr>"
        )
    rows_html = "".join(body) or "<tr><td colspan='7' class='muted'>No sessions match these filters.</td></tr>"
    return (
        "<table><thead><tr><th>Parent</th><th>Children</th><th>Start</th><th>End</th><th>Duration</th>"
        f"<th>Status</th><th class='right'>Action</th></tr></thead><tbody>{rows_html}</tbody></table>"
    )


@router.get("/sessions", response_class=HTMLResponse)
def sessions_list(
    request: Request,
    status: str = Query("all"),
    range: str = Query("today"),
) -> Response:
    status_value = (status or "all").strip().lower()
    if status_value not in SESSION_STATUS_FILTERS:
        status_value = "all"
    range_value = (range or "today").strip().lower()
    if range_value not in SESSION_RANGE_FILTERS:
        range_value = "today"
    backend = backend_of(request)
    live_only = request.headers.get(LIVE_REGION_HEADER) == "1"
    moment_ms = now_ms(request)
    try:
        rows = backend.list_sessions(status=status_value, range=range_value)
    except PlayZoneError as exc:
        message = report_error(request, exc, "Failed to load sessions", page="sessions")
        if live_only:
            return Response(status_code=502, headers={"X-Error": message})
        rows = []
        error: Optional[str] = message
    else:
        error = None
    if live_only:
        return HTMLResponse(_sessions_table(rows, moment_ms))
    counts_rows: Sequence[Session] = rows
    if error is None and (status_value != "all" or range_value != "today"):
        try:
            counts_rows = backend.list_sessions(range="today")
        except PlayZoneError as exc:
            report_error(request, exc, "Failed to load today's totals", page="sessions")
    counts = session_counts(counts_rows, now_local(request).date())
    status_options = _options(((value, value.capitalize()) for value in SESSION_STATUS_FILTERS), status_value)
    range_labels = {"today": "Today", "week": "This week", "month": "This month", "all": "All time"}
    range_options = _options(((value, range_labels[value]) for value in SESSION_RANGE_FILTERS), range_value)
    inner = f"""
    <h2>Sessions</h2>
    <p class='muted'>View and manage all play sessions. Refreshes every {int(LIST_POLL_SECONDS)}s.</p>
    {banner(error)}
    <div id='live-error' class='banner--warning' style='font-size:13px;'></div>
    <div class='grid'>
      <div class='card'><div class='stat-card__label'>Active sessions</div><div class='stat-card__value'>{counts.active}</div></div>
      <div class='card'><div class='stat-card__label'>Completed today</div><div class='stat-card__value'>{counts.completed_today}</div></div>
      <div class='card'><div class='stat-card__label'>Total today</div><div class='stat-card__value'>{counts.total_today}</div></div>
    </div>
    <div class='card'>
      <form method='get' action='/sessions' class='filters'>
        <div><label>Status</label><select name='status'>{status_options}</select></div>
        <div><label>Range</label><select name='range'>{range_options}</select></div>
        <div><button type='submit'>Apply</button></div>
      </form>
      <div id='live-region'>{_sessions_table(rows, moment_ms)}</div>
    </div>
    <script>{LIVE_REGION_JS}</script>
    """
    return render_page(request, "PlayZone | Sessions", inner, active="sessions")


@router.get("/sessions/{session_id}", response_class=HTMLResponse)
def session_detail_page(request: Request, session_id: int) -> HTMLResponse:
    try:
        row = backend_of(request).get_session(session_id)
    except NotFoundError:
        return not_found_page(
            request,
            "Session not found",
            "The session you are looking for does not exist.",
            "/sessions",
            "Back to sessions",
        )
    except PlayZoneError as exc:
        message = report_error(request, exc, "Failed to load session", page="session_detail")
        return render_page(request, "PlayZone | Session", banner(message), active="sessions", status_code=502)
    settings = settings_of(request)
    label = settings.shop.currency_label
    detail = session_detail(row, now_ms(request))
    countdown_html = ""
    if detail.countdown is not None:
        if detail.countdown.finished:
            countdown_html = "<p><span class='pill pill--finished'>Finished</span> Planned time is over.</p>"
        else:
            css = "pill--warning" if detail.countdown.near_expiry else "pill--active"
            countdown_html = (
                f"<p>Time left: <span class='pill {css}'>{html_escape(detail.countdown.clock)}</span>"
                + (f" <strong>Last {LAST_MINUTES_WARNING} minutes.</strong>" if detail.countdown.near_expiry else "")
                + "</p>"
            )
    method_choices = []
    if settings.payments.cash:
        method_choices.append((PaymentMethod.CASH.value, PaymentMethod.CASH.label))
    if settings.payments.bank_transfer:
        method_choices.append((PaymentMethod.BANK_TRANSFER.value, PaymentMethod.BANK_TRANSFER.label))
    selected_method = row.payment_method.value if row.payment_method else method_choices[0][0]
    end_form = ""
    if row.is_active:
        end_form = f"""
        <div class='card'>
          <h3>Complete payment</h3>
          <form method='post' action='/sessions/{row.id}/end' class='stacked-form'>
            <label>Method</label><select name='payment_method'>{_options(method_choices, selected_method)}</select>
            <label><input type='checkbox' name='apply_discount' value='1'> Apply reward discount</label>
            <div class='actions'><button type='submit'>End session</button></div>
          </form>
        </div>
        """
    inner = f"""
    <div class='actions' style='justify-content:space-between;'>
      <div><h2 style='margin:0;'>Session details {status_pill(row.status.value)}</h2>
        <p class='muted'>End session, record payment method, apply discount.</p></div>
      <a class='button-link secondary' href='/sessions'>Back</a>
    </div>
    <div class='grid'>
      <div class='card'><div class='stat-card__label'>Parent</div>
        <div class='stat-card__value' style='font-size:20px;'><a href='/parents/{row.parent_id}'>{html_escape(row.parent_name or '-')}</a></div>
        <div class='stat-card__meta'>WhatsApp: {html_escape(row.parent_phone or '-')}</div>
        <div class='stat-card__meta'>{html_escape(children_label(row.children_count))}</div></div>
      <div class='card'><div class='stat-card__label'>Time</div>
        <div class='stat-card__value' style='font-size:20px;'>{html_escape(detail.start_label)} → {html_escape(detail.end_label)}</div>
        <div class='stat-card__meta'>Duration: {html_escape(detail.duration_text)}</div>
        <div class='stat-card__meta'>Planned end: {html_escape(detail.planned_end_label)}</div>
        {countdown_html}</div>
      <div class='card'><div class='stat-card__label'>Payment</div>
        <div class='stat-card__value' style='font-size:20px;'>{html_escape(format_currency(row.final_price, label=label))}</div>
        <div class='stat-card__meta'>Method: {html_escape(payment_label(row))}</div>
        <div class='stat-card__meta'>Duration saved: {'-' if row.duration_minutes is None else row.duration_minutes}</div></div>
    </div>
    {end_form}
    <div class='card'>
      <h3>Payment breakdown</h3>
      <table>
        <tr><td class='muted'>Normal</td><td class='right'>{html_escape(format_currency(row.normal_price, label=label))}</td></tr>
        <tr><td class='muted'>Discount</td><td class='right'>- {html_escape(format_currency(row.discount_amount, label=label))}</td></tr>
        <tr><th>Total</th><th class='right'>{html_escape(format_currency(row.final_price, label=label))}</th></tr>
      </table>
    </div>
    """
    return render_page(request, f"PlayZone | Session {row.id}", inner, active="sessions")


@router.post("/sessions/{session_id}/end")
def end_session(
    request: Request,
    session_id: int,
    payment_method: str = Form(""),
    apply_discount: Optional[str] = Form(None),
):
    back = f"/sessions/{session_id}"
    try:
        method = PaymentMethod((payment_method or "").strip().lower())
    except ValueError:
        set_notice(request, "Choose a payment method.", "error")
        return RedirectResponse(back, status_code=302)
    try:
        session = backend_of(request).end_session(session_id, method, apply_discount=_flag(apply_discount))
    except PlayZoneError as exc:
        set_notice(request, report_error(request, exc, "Failed to end session", page="end_session"), "error")
        return RedirectResponse(back, status_code=302)
    logger_of(request).log(
        "session_ended",
        session_id=session.id,
        duration_minutes=session.duration_minutes,
        final_price=float(session.final_price),
        payment_method=method.value,
    )
    total_label = format_currency(session.final_price, label=settings_of(request).shop.currency_label)
    set_notice(request, f"Session ended. Total {total_label} ({method.label}).", "success")
    return RedirectResponse("/sessions", status_code=302)


# ---------------------------------------------------------------------------
# Display board
# ---------------------------------------------------------------------------
def _board_card_html(card: BoardCard, request: Request) -> str:
    display = settings_of(request).display
    state = card.countdown.state
    css = f" board-card--{state}" if display.highlight_active else ""
    parts = [f"<div class='board-card{css}'>"]
    if display.show_parent_name:
        parts.append(f"<div class='board-card__name'>{html_escape(card.parent_name)}</div>")
    if display.show_children_count:
        parts.append(f"<div class='board-card__meta'>{html_escape(children_label(card.children_count))}</div>")
    parts.append(
        f"<div class='board-card__meta'>{html_escape(card.start_label)} &rarr; {html_escape(card.end_label)}</div>"
    )
    parts.append(f"<div class='board-card__status'>{'Finished' if card.countdown.finished else 'Playing'}</div>")
    if display.show_timer:
        parts.append(f"<div class='board-card__clock'>{html_escape(card.countdown.clock)}</div>")
    parts.append("</div>")
    return "".join(parts)


def _board_rows(request: Request) -> List[Session]:
    return backend_of(request).list_sessions(status="active", range="today")


@router.get("/display", response_class=HTMLResponse)
def display_board(request: Request) -> HTMLResponse:
    error: Optional[str] = None
    cards: List[BoardCard] = []
    moment_ms = now_ms(request)
    try:
        cards = board_cards(_board_rows(request), moment_ms)
    except PlayZoneError as exc:
        error = report_error(request, exc, "Failed to load sessions", page="display")
    shop_name = settings_of(request).shop.name
    cards_html = "".join(_board_card_html(card, request) for card in cards) or (
        "<p class='board-empty'>No active sessions at the moment.</p>"
    )
    clock = now_local(request).strftime("%H:%M:%S")
    inner = f"""
    <header class='board-header'>
      <div>
        <h1>{html_escape(shop_name)} – Live Sessions</h1>
        <p>Updates every {int(BOARD_POLL_SECONDS)}s. Countdown turns red in the last {LAST_MINUTES_WARNING} minutes.</p>
        <div id='board-error'>{html_escape(error or '')}</div>
      </div>
      <div style='text-align:right;'><div style='font-size:11px; color:#64748b; text-transform:uppercase;'>Current time</div>
        <div id='board-clock'>{clock}</div></div>
    </header>
    <main id='board'>{cards_html}</main>
    <script>{LIVE_BOARD_JS}</script>
    """
    return HTMLResponse(frame(f"{shop_name} – Live Sessions", inner, head_extra=board_styles()))


@router.get("/display/board.json")
def display_board_data(request: Request) -> JSONResponse:
    moment_ms = now_ms(request)
    try:
        rows = _board_rows(request)
    except PlayZoneError as exc:
        message = report_error(request, exc, "Failed to load sessions", page="display_data")
        request.app.state.health.record_poll_failure("board", message)
        failed = PollSnapshot(rows=(), now_ms=moment_ms, error=message)
        return JSONResponse(_exporter.from_poll(failed, display=settings_of(request).display), status_code=502)
    request.app.state.health.record_poll_success("board", len(rows))
    snapshot = PollSnapshot(rows=tuple(rows), now_ms=moment_ms)
    return JSONResponse(_exporter.from_poll(snapshot, display=settings_of(request).display))


# ---------------------------------------------------------------------------
# Earnings
# ---------------------------------------------------------------------------
@router.get("/earnings", response_class=HTMLResponse)
def earnings_page(
    request: Request,
    period: str = Query("today"),
    method: str = Query("all"),
) -> HTMLResponse:
    period_value = period if period in PERIODS else "today"
    method_value = method if method in METHOD_FILTERS else "all"
    error: Optional[str] = None
    sessions: List[Session] = []
    try:
        sessions = backend_of(request).list_sessions(status="completed", range="all")
    except PlayZoneError as exc:
        error = report_error(request, exc, "Failed to load earnings", page="earnings")
    today = now_local(request).date()
    rows = earning_rows(sessions, now_ms(request))
    summary = summarize_earnings(rows, today)
    filtered = filter_earnings(rows, period=period_value, method=method_value, today=today)
    label = settings_of(request).shop.currency_label
    table_rows = "".join(
        f"<tr><td>{row.day.isoformat()}</td><td>{html_escape(row.parent_name)}</td><td>{html_escape(row.duration_text)}</td>"
        f"<td class='right'>{html_escape(format_currency(row.base_amount, label=label))}</td>"
        f"<td class='right'>{'-' if not row.discount else '- ' + html_escape(format_currency(row.discount, label=label))}</td>"
        f"<td class='right'>{html_escape(format_currency(row.final_amount, label=label))}</td>"
        f"<td>{html_escape(row.method.label if row.method else 'Pending')}</td></tr>"
        for row in filtered
    ) or "<tr><td colspan='7' class='muted'>No payments for this filter.</td></tr>"
    period_labels = {"today": "Today", "week": "This week", "month": "This month", "all": "All time"}
    method_labels = {"all": "All methods", "cash": "Cash", "bank_transfer": "Bank transfer"}
    inner = f"""
    <h2>Earnings</h2>
    <p class='muted'>Overview of payments and revenue from completed sessions.</p>
    {banner(error)}
    <div class='grid'>
      <div class='card'><div class='stat-card__label'>Today</div><div class='stat-card__value'>{html_escape(format_currency(summary.today_total, label=label))}</div>
        <div class='stat-card__meta'>{summary.paid_sessions_today} paid sessions today</div></div>
      <div class='card'><div class='stat-card__label'>This month</div><div class='stat-card__value'>{html_escape(format_currency(summary.month_total, label=label))}</div></div>
      <div class='card'><div class='stat-card__label'>Filtered total</div><div class='stat-card__value'>{html_escape(format_currency(total(filtered), label=label))}</div></div>
    </div>
    <div class='card'>
      <form method='get' action='/earnings' class='filters'>
        <div><label>Period</label><select name='period'>{_options(((key, period_labels[key]) for key in PERIODS), period_value)}</select></div>
        <div><label>Method</label><select name='method'>{_options(((key, method_labels[key]) for key in METHOD_FILTERS), method_value)}</select></div>
        <div><button type='submit'>Apply</button></div>
      </form>
      <table><thead><tr><th>Date</th><th>Parent</th><th>Duration</th><th class='right'>Base</th>
        <th class='right'>Discount</th><th class='right'>Final</th><th>Method</th></tr></thead>
      <tbody>{table_rows}</tbody></table>
    </div>
    """
    return render_page(request, "PlayZone | Earnings", inner, active="earnings")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------
def _checkbox(name: str, label: str, checked: bool) -> str:
    return f"<label><input type='checkbox' name='{name}' value='1'{' checked' if checked else ''}> {html_escape(label)}</label>"


def settings_form(request: Request, *, error: Optional[str] = None, status_code: int = 200) -> HTMLResponse:
    current = settings_of(request)
    hours = [(str(hour), f"{hour:02d}:00") for hour in range(24)]
    inner = f"""
    <h2>Settings</h2>
    <p class='muted'>Shop details, reference pricing, payment options and display board toggles.
      Saved for this console until it restarts.</p>
    {banner(error)}
    <form method='post' action='/settings'>
      <div class='card stacked-form'>
        <h3>Shop</h3>
        <label>Name</label><input name='shop_name' value='{html_escape(current.shop.name)}'>
        <label>Address</label><input name='address' value='{html_escape(current.shop.address)}'>
        <label>Phone</label><input name='phone' value='{html_escape(current.shop.phone)}'>
        <label>Opening hour</label><select name='open_hour'>{_options(hours, str(current.shop.open_hour))}</select>
        <label>Closing hour</label><select name='close_hour'>{_options(hours, str(current.shop.close_hour))}</select>
        <label>Currency label</label><input name='currency_label' value='{html_escape(current.shop.currency_label)}'>
      </div>
      <div class='card stacked-form'>
        <h3>Pricing (reference)</h3>
        <label>Hourly rate</label><input name='hourly_rate' value='{current.pricing.hourly_rate}'>
        <label>Minimum charge (minutes)</label><input name='min_charge_minutes' value='{current.pricing.min_charge_minutes}'>
        <label>Standard session (minutes)</label><input name='default_session_minutes' value='{current.pricing.default_session_minutes}'>
        <label>Late grace (minutes)</label><input name='late_grace_minutes' value='{current.pricing.late_grace_minutes}'>
      </div>
      <div class='card stacked-form'>
        <h3>Rewards</h3>
        {_checkbox('rewards_enabled', 'Show reward figures', current.rewards.enabled)}
        <label>Note</label><input name='rewards_note' value='{html_escape(current.rewards.note)}'>
      </div>
      <div class='card stacked-form'>
        <h3>Payments</h3>
        {_checkbox('pay_cash', 'Cash', current.payments.cash)}
        {_checkbox('pay_bank_transfer', 'Bank transfer', current.payments.bank_transfer)}
        <label>Bank name</label><input name='bank_name' value='{html_escape(current.payments.bank_name)}'>
        <label>Account name</label><input name='account_name' value='{html_escape(current.payments.account_name)}'>
        <label>Account number</label><input name='account_number' value='{html_escape(current.payments.account_number)}'>
        <label>Reference hint</label><input name='reference_hint' value='{html_escape(current.payments.reference_hint)}'>
      </div>
      <div class='card stacked-form'>
        <h3>Display board</h3>
        {_checkbox('show_timer', 'Show countdown timer', current.display.show_timer)}
        {_checkbox('show_parent_name', 'Show parent name', current.display.show_parent_name)}
        {_checkbox('show_children_count', 'Show children count', current.display.show_children_count)}
        {_checkbox('highlight_active', 'Highlight sessions near expiry', current.display.highlight_active)}
      </div>
      <div class='actions'><button type='submit'>Save settings</button></div>
    </form>
    """
    return render_page(request, "PlayZone | Settings", inner, active="settings", status_code=status_code)


@router.get("/settings", response_class=HTMLResponse)
def settings_page(request: Request) -> HTMLResponse:
    return settings_form(request)


@router.post("/settings")
async def settings_save(request: Request):
    form = await request.form()
    try:
        request.app.state.settings.update_from_form(dict(form))
    except ValidationError as exc:
        return settings_form(request, error=exc.message, status_code=400)
    logger_of(request).log("settings_updated", **request.app.state.settings.as_dict()["shop"])
    set_notice(request, "Settings saved.", "success")
    return RedirectResponse("/settings", status_code=302)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@router.get("/healthz")
def healthz(request: Request) -> JSONResponse:
    payload = request.app.state.health.status()
    payload["backend"] = type(backend_of(request)).__name__
    payload["recent_errors"] = [entry.get("error") for entry in logger_of(request).events("api_error")[-5:]]
    return JSONResponse(payload)


# ---------------------------------------------------------------------------
# FastAPI application setup
# ---------------------------------------------------------------------------
def default_settings() -> ConsoleSettings:
    return ConsoleSettings(
        shop=ShopSettings(open_hour=SHOP_OPEN_HOUR, close_hour=SHOP_CLOSE_HOUR),
        pricing=PricingSettings(default_session_minutes=DEFAULT_SESSION_MINUTES),
    )


def build_backend(kind: str = BACKEND_KIND) -> PlayZoneBackend:
    if kind == "memory":
        return InMemoryBackend()
    return ApiClient(API_BASE_URL, timeout=API_TIMEOUT)


def create_app(
    backend: Optional[PlayZoneBackend] = None,
    *,
    clock: Optional[Callable[[], datetime]] = None,
    settings: Optional[ConsoleSettings] = None,
    logger: Optional[StructuredLogger] = None,
) -> FastAPI:
    """Build the console around ``backend`` (the configured API by default)."""

    application = FastAPI(title="PlayZone Console")
    application.add_middleware(
        SessionMiddleware,
        secret_key=SESSION_SECRET,
        same_site="lax",
        max_age=None,
    )
    application.state.backend = backend or build_backend()
    application.state.clock = clock or datetime.now
    application.state.settings = SettingsStore(settings or default_settings())
    application.state.logger = logger or StructuredLogger(path=LOG_PATH)
    application.state.health = HealthMonitor()
    application.include_router(router)
    return application


app = create_app()

__all__ = [
    "app",
    "build_backend",
    "create_app",
    "default_settings",
    "parse_children",
    "router",
]
