"""Serves the live status dashboard, its JSON feed and a health check."""

from __future__ import annotations

import asyncio
import threading
from datetime import datetime
from html import escape
from zoneinfo import ZoneInfo

import uvicorn
from fastapi import FastAPI
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse

from restock_monitor.misc.logger import get_logger
from restock_monitor.misc.status_publisher import StatusPublisher

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>__TITLE__</title>
  <style>
    body { font-family: "Segoe UI", sans-serif; margin: 0; padding: 20px; background: #f8f9fa; color: #333; }
    .card { background: #fff; padding: 25px; border-radius: 12px; box-shadow: 0 4px 15px rgba(0,0,0,0.05); max-width: 800px; margin: 0 auto; }
    .header { display: flex; justify-content: space-between; align-items: center; }
    .status { padding: 20px; border-radius: 8px; text-align: center; font-weight: bold; font-size: 1.5em; margin: 20px 0; }
    .s-ok { background: #e3f2fd; color: #1565c0; }
    .s-alert { background: #c62828; color: #fff; }
    .s-error { background: #fff3e0; color: #e65100; }
    .item { padding: 15px; border-bottom: 1px solid #eee; display: flex; justify-content: space-between; font-size: 1.2em; }
    .cnt { color: #28a745; font-weight: bold; }
    .empty { padding: 15px; text-align: center; color: #999; }
    .log { background: #1e1e1e; color: #82aaff; padding: 15px; height: 250px; overflow-y: auto; font-size: 12px; white-space: pre-wrap; border-radius: 8px; font-family: monospace; }
  </style>
</head>
<body>
  <div class="card">
    <div class="header"><h2>__TITLE__</h2><small id="last-check">-</small></div>
    <div id="status" class="status s-ok">Connecting...</div>
    <h3>In stock</h3>
    <div id="items"></div>
    <h3>Log</h3>
    <div id="logs" class="log"></div>
  </div>
  <script>
let pollMs = __INTERVAL__;

function text(value) {
  const node = document.createElement("span");
  node.textContent = String(value ?? "");
  return node.innerHTML;
}

function render(data) {
  document.getElementById("last-check").textContent = data.lastCheck;
  const box = document.getElementById("status");
  const list = document.getElementById("items");
  if (data.status === "ERROR") {
    box.className = "status s-error";
    box.textContent = "Last check failed";
  } else if (data.items.length > 0) {
    box.className = "status s-alert";
    box.textContent = `${data.items.length} item(s) in stock!`;
  } else {
    box.className = "status s-ok";
    box.textContent = data.status === "INIT" ? "Waiting for first check" : "Monitoring - sold out";
  }
  document.title = data.items.length > 0 ? `(${data.items.length}) __TITLE__` : "__TITLE__";
  list.innerHTML = data.items.length
    ? data.items.map((i) => `<div class="item"><span>${text(i.name)}</span><span class="cnt">${text(i.count)}</span></div>`).join("")
    : '<div class="empty">Nothing in stock</div>';
  document.getElementById("logs").textContent = data.logs.join("\\n");
}

function load() {
  fetch("api/data")
    .then((r) => r.json())
    .then((data) => {
      render(data);
      if (data.interval && data.interval !== pollMs) {
        pollMs = data.interval;
      }
    })
    .catch(() => {})
    .finally(() => setTimeout(load, pollMs));
}

load();
  </script>
</body>
</html>
"""


def render_dashboard(title: str, interval_ms: int) -> str:
    return HTML_TEMPLATE.replace("__TITLE__", escape(title)).replace("__INTERVAL__", str(int(interval_ms)))


def create_app(publisher: StatusPublisher, site_name: str = "Monitor", timezone: str = "Asia/Shanghai") -> FastAPI:
    """Build the dashboard app over a publisher; every route is read-only."""
    app = FastAPI(title=f"{site_name} Restock Monitor")
    tz = ZoneInfo(timezone)

    @app.get("/api/data")
    def api_data() -> JSONResponse:
        return JSONResponse(content=publisher.view().to_json())

    @app.get("/", response_class=HTMLResponse)
    def dashboard() -> HTMLResponse:
        return HTMLResponse(render_dashboard(f"{site_name} Monitor", publisher.view().interval))

    @app.get("/healthz", response_class=PlainTextResponse)
    def healthcheck() -> PlainTextResponse:
        now = datetime.now(tz).strftime("%Y-%m-%d %H:%M:%S")
        return PlainTextResponse(f"{site_name} restock monitor running.\nTime: {now}")

    return app


def start_dashboard_background(app: FastAPI, host: str = "0.0.0.0", port: int = 3000) -> tuple[uvicorn.Server, threading.Thread]:
    logger = get_logger("dashboard")
    logger.info("starting dashboard thread host=%s port=%s", host, port)
    config = uvicorn.Config(app, host=host, port=port, reload=False, log_config=None, access_log=False)
    server = uvicorn.Server(config)

    def run_dashboard() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(server.serve())
        finally:
            loop.close()

    thread = threading.Thread(target=run_dashboard, name="dashboard-server", daemon=True)
    thread.start()
    return server, thread


def stop_dashboard_background(server: uvicorn.Server | None, thread: threading.Thread | None) -> None:
    if server is not None:
        server.should_exit = True
    if thread is not None:
        thread.join(timeout=5)
