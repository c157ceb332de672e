"""Configuration constants for the PlayZone web console."""
from __future__ import annotations

import os
import textwrap
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from ..timing import LAST_MINUTES_WARNING, MS_PER_MINUTE

load_dotenv()


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


API_BASE_URL = os.environ.get("PLAYZONE_API_URL", "http://localhost:4000/api")
API_TIMEOUT = _env_float("PLAYZONE_API_TIMEOUT", 6.0)
BACKEND_KIND = os.environ.get("PLAYZONE_BACKEND", "http").strip().lower()
SESSION_SECRET = os.environ.get("SESSION_SECRET", "change-this-session-secret")
BOARD_POLL_SECONDS = _env_float("BOARD_POLL_SECONDS", 10.0)
LIST_POLL_SECONDS = _env_float("LIST_POLL_SECONDS", 30.0)
TICK_SECONDS = _env_float("TICK_SECONDS", 1.0)
SHOP_OPEN_HOUR = _env_int("SHOP_OPEN_HOUR", 8)
SHOP_CLOSE_HOUR = _env_int("SHOP_CLOSE_HOUR", 20)
DEFAULT_SESSION_MINUTES = _env_int("DEFAULT_SESSION_MINUTES", 120)
MAX_CHILDREN = _env_int("MAX_CHILDREN", 6)
_log_path = os.environ.get("PLAYZONE_LOG_PATH", "").strip()
LOG_PATH: Optional[Path] = Path(_log_path) if _log_path else None
SESSION_STATUS_FILTERS: Tuple[str, ...] = ("all", "active", "completed")
SESSION_RANGE_FILTERS: Tuple[str, ...] = ("today", "week", "month", "all")
LIVE_REGION_HEADER = "X-Live-Region"

LIVE_BOARD_JS = (
    textwrap.dedent(
        """
        (function() {
          const POLL_MS = __POLL_MS__;
          const TICK_MS = __TICK_MS__;
          const WARNING_MS = __WARNING_MS__;
          const board = document.getElementById('board');
          const banner = document.getElementById('board-error');
          const clockEl = document.getElementById('board-clock');
          let rows = [];
          let display = {};
          let skew = 0;
          let alive = true;

          function pad(n) { return String(n).padStart(2, '0'); }

          function formatClock(ms) {
            if (!(ms > 0)) return '00:00:00';
            const total = Math.floor(ms / 1000);
            return pad(Math.floor(total / 3600)) + ':' + pad(Math.floor((total % 3600) / 60)) + ':' + pad(total % 60);
          }

          function esc(text) {
            const node = document.createElement('div');
            node.textContent = text == null ? '' : String(text);
            return node.innerHTML;
          }

          function render() {
            const now = Date.now() + skew;
            clockEl.textContent = new Date(now).toLocaleTimeString([], {hour: '2-digit', minute: '2-digit', second: '2-digit'});
            if (!rows.length) {
              board.innerHTML = "<p class='board-empty'>No active sessions at the moment.</p>";
              return;
            }
            board.innerHTML = rows.map(function(s) {
              const remaining = s.planned_end_ms - now;
              const finished = remaining <= 0;
              const warning = !finished && remaining <= WARNING_MS;
              const state = finished ? 'finished' : (warning ? 'warning' : 'running');
              const highlight = display.highlight_active === false ? '' : ' board-card--' + state;
              let html = "<div class='board-card" + highlight + "'>";
              if (display.show_parent_name !== false) html += "<div class='board-card__name'>" + esc(s.parent_name) + "</div>";
              if (display.show_children_count !== false && s.children_count != null) {
                html += "<div class='board-card__meta'>" + esc(s.children_count) + (Number(s.children_count) === 1 ? ' child' : ' children') + "</div>";
              }
              html += "<div class='board-card__meta'>" + esc(s.start_label) + ' &rarr; ' + esc(s.end_label) + "</div>";
              html += "<div class='board-card__status'>" + (finished ? 'Finished' : 'Playing') + "</div>";
              if (display.show_timer !== false) html += "<div class='board-card__clock'>" + formatClock(remaining) + "</div>";
              return html + "</div>";
            }).join('');
          }

          async function load() {
            try {
              const resp = await fetch('/display/board.json', {cache: 'no-store'});
              const data = await resp.json();
              if (!alive) return;
              if (!resp.ok) throw new Error(data.error || 'Failed to load sessions');
              skew = Number(data.server_now_ms) - Date.now();
              rows = Array.isArray(data.sessions) ? data.sessions.slice() : [];
              display = data.display || {};
              banner.textContent = '';
              render();
            } catch (err) {
              if (!alive) return;
              banner.textContent = (err && err.message) ? err.message : 'Failed to load sessions';
            }
          }

          let tickId = null;
          let pollId = null;
          function onVisibility() {
            if (document.visibilityState === 'visible') load();
          }
          function start() {
            alive = true;
            tickId = window.setInterval(render, TICK_MS);
            pollId = window.setInterval(load, POLL_MS);
            document.addEventListener('visibilitychange', onVisibility);
          }
          function stop() {
            alive = false;
            window.clearInterval(tickId);
            window.clearInterval(pollId);
            document.removeEventListener('visibilitychange', onVisibility);
          }
          window.addEventListener('pagehide', stop);
          // Restored from the back/forward cache: timers were cleared on pagehide.
          window.addEventListener('pageshow', function(event) {
            if (!event.persisted) return;
            start();
            load();
          });
          start();
          load();
        })();
        """
    )
    .strip()
    .replace("__POLL_MS__", str(int(BOARD_POLL_SECONDS * 1000)))
    .replace("__TICK_MS__", str(int(TICK_SECONDS * 1000)))
    .replace("__WARNING_MS__", str(LAST_MINUTES_WARNING * MS_PER_MINUTE))
)

LIVE_REGION_JS = (
    textwrap.dedent(
        """
        (function() {
          const POLL_MS = __POLL_MS__;
          const TICK_MS = __TICK_MS__;
          const region = document.getElementById('live-region');
          const banner = document.getElementById('live-error');
          if (!region) return;
          let alive = true;

          function formatDuration(mins) {
            const safe = mins > 0 ? Math.floor(mins) : 0;
            const h = Math.floor(safe / 60);
            const m = safe % 60;
            if (h <= 0) return m + ' min';
            if (m === 0) return h + ' h';
            return h + ' h ' + m + ' min';
          }

          function tick() {
            const now = Date.now();
            region.querySelectorAll('[data-elapsed-start-ms]').forEach(function(cell) {
              const start = Number(cell.getAttribute('data-elapsed-start-ms'));
              if (!start) return;
              cell.textContent = formatDuration(Math.floor((now - start) / 60000));
            });
          }

          async function load() {
            try {
              const resp = await fetch(window.location.href, {cache: 'no-store', headers: {'__HEADER__': '1'}});
              const html = await resp.text();
              if (!alive) return;
              if (!resp.ok) throw new Error(resp.headers.get('X-Error') || 'Failed to refresh');
              region.innerHTML = html;
              if (banner) banner.textContent = '';
              tick();
            } catch (err) {
              if (!alive) return;
              if (banner) banner.textContent = (err && err.message) ? err.message : 'Failed to refresh';
            }
          }

          let tickId = null;
          let pollId = null;
          function onVisibility() {
            if (document.visibilityState === 'visible') load();
          }
          function start() {
            alive = true;
            tickId = window.setInterval(tick, TICK_MS);
            pollId = window.setInterval(load, POLL_MS);
            document.addEventListener('visibilitychange', onVisibility);
          }
          function stop() {
            alive = false;
            window.clearInterval(tickId);
            window.clearInterval(pollId);
            document.removeEventListener('visibilitychange', onVisibility);
          }
          window.addEventListener('pagehide', stop);
          // Restored from the back/forward cache: timers were cleared on pagehide.
          window.addEventListener('pageshow', function(event) {
            if (!event.persisted) return;
            start();
            load();
          });
          start();
        })();
        """
    )
    .strip()
    .replace("__POLL_MS__", str(int(LIST_POLL_SECONDS * 1000)))
    .replace("__TICK_MS__", str(int(TICK_SECONDS * 1000)))
    .replace("__HEADER__", LIVE_REGION_HEADER)
)

__all__ = [
    "API_BASE_URL",
    "API_TIMEOUT",
    "BACKEND_KIND",
    "SESSION_SECRET",
    "BOARD_POLL_SECONDS",
    "LIST_POLL_SECONDS",
    "TICK_SECONDS",
    "SHOP_OPEN_HOUR",
    "SHOP_CLOSE_HOUR",
    "DEFAULT_SESSION_MINUTES",
    "MAX_CHILDREN",
    "LOG_PATH",
    "SESSION_STATUS_FILTERS",
    "SESSION_RANGE_FILTERS",
    "LIVE_REGION_HEADER",
    "LIVE_BOARD_JS",
    "LIVE_REGION_JS",
]
