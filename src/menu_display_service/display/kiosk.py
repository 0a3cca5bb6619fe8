"""Kiosk/TV behaviour of the public display page.

The page runs unattended, so everything here executes in the browser: the
script requests fullscreen on load (a refusal is ignored), autoscrolls
pause -> down -> pause -> up forever, and listens on the control socket for
``fullscreen`` and ``refresh`` commands. A refresh swaps in the freshly
rendered menu root and restarts the scroll cycle, as does a fullscreen
change. Exactly one timer or animation frame is outstanding at any time and
it is cancelled before a new cycle starts.
"""

import json

from pydantic import BaseModel, Field

DEFAULT_PAUSE_MS = 2000
DEFAULT_PIXELS_PER_FRAME = 1

_KIOSK_SCRIPT = """
(() => {
  const config = __KIOSK_CONFIG__;
  const scroller = () => document.scrollingElement || document.documentElement;
  let timer = null;
  let frame = null;

  function cancelCycle() {
    if (timer !== null) { clearTimeout(timer); timer = null; }
    if (frame !== null) { cancelAnimationFrame(frame); frame = null; }
  }

  function pause(next) {
    timer = setTimeout(() => { timer = null; next(); }, config.pauseMs);
  }

  function scrollTowards(target, next) {
    const step = () => {
      const el = scroller();
      const current = el.scrollTop;
      const goal = target === "bottom" ? Math.max(el.scrollHeight - el.clientHeight, 0) : 0;
      if (current === goal) { frame = null; next(); return; }
      const delta = Math.min(config.pixelsPerFrame, Math.abs(goal - current));
      el.scrollTop = current + (goal > current ? delta : -delta);
      if (el.scrollTop === current) { frame = null; next(); return; }
      frame = requestAnimationFrame(step);
    };
    frame = requestAnimationFrame(step);
  }

  function cycle() {
    pause(() => scrollTowards("bottom", () => pause(() => scrollTowards("top", cycle))));
  }

  function restart() {
    cancelCycle();
    cycle();
  }

  function requestFullscreen() {
    const el = document.documentElement;
    if (!el.requestFullscreen) return;
    el.requestFullscreen().catch(() => {});
  }

  async function reloadMenu() {
    try {
      const response = await fetch(window.location.href, { cache: "no-store" });
      if (!response.ok) return;
      const doc = new DOMParser().parseFromString(await response.text(), "text/html");
      const next = doc.getElementById("menu-root");
      const current = document.getElementById("menu-root");
      if (next && current) {
        current.replaceWith(document.importNode(next, true));
        restart();
      }
    } catch (err) {
      // keep showing the current menu
    }
  }

  function connect() {
    if (!config.controlUrl) return;
    const ws = new WebSocket(config.controlUrl);
    ws.onmessage = (event) => {
      let message;
      try { message = JSON.parse(event.data); } catch (err) { return; }
      if (message.action === "fullscreen") requestFullscreen();
      else if (message.action === "refresh") reloadMenu();
    };
    ws.onclose = () => {
      setTimeout(() => { reloadMenu(); connect(); }, config.reconnectMs);
    };
  }

  document.addEventListener("fullscreenchange", restart);
  window.addEventListener("pagehide", cancelCycle);
  if (config.autoFullscreen) requestFullscreen();
  connect();
  restart();
})();
"""


class KioskSettings(BaseModel):
    """Timing and behaviour of the kiosk script.

    Attributes:
        pause_ms: Pause at the top and at the bottom of the page
        pixels_per_frame: Scroll speed, one step per animation frame
        auto_fullscreen: Request fullscreen as soon as the page loads
        reconnect_ms: Delay before reopening a dropped control socket
    """

    pause_ms: int = Field(default=DEFAULT_PAUSE_MS, ge=0)
    pixels_per_frame: int = Field(default=DEFAULT_PIXELS_PER_FRAME, ge=1)
    auto_fullscreen: bool = True
    reconnect_ms: int = Field(default=5000, ge=0)


def render_kiosk_script(control_url: str | None = None, settings: KioskSettings | None = None) -> str:
    """Return the ``<script>`` element driving a display page.

    Args:
        control_url: WebSocket URL of the slug's control channel, None for
            a page that only autoscrolls
        settings: Kiosk timing, defaults when omitted

    Returns:
        Script element safe to embed at the end of ``<body>``
    """
    settings = settings or KioskSettings()
    config = {
        "controlUrl": control_url,
        "pauseMs": settings.pause_ms,
        "pixelsPerFrame": settings.pixels_per_frame,
        "autoFullscreen": settings.auto_fullscreen,
        "reconnectMs": settings.reconnect_ms,
    }
    # "</" would end the script element early
    encoded = json.dumps(config).replace("</", "<\\/")
    return f"<script>{_KIOSK_SCRIPT.replace('__KIOSK_CONFIG__', encoded)}</script>"
