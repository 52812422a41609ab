"""
Web Server for Endurance Loop - Local Network Remote.

Serves a small monitor page plus a JSON API for controlling the session
from a phone or another machine on the same network: master transport,
master volume, per-track transport and volume, and config document
export/import.

Usage:
    server = SessionWebServer(session, scheduler)
    server.start()        # Non-blocking, runs in thread
    ...
    server.stop()

Devices on the same WiFi network can access the remote at:
    http://<your-local-ip>:<port>

Request handlers run on werkzeug's threads. They never touch the session
directly; every command is handed to the scheduler thread with
scheduler.submit() and the handler waits for its result.
"""

import socket
import logging
import threading
from typing import Optional

from flask import Flask, jsonify, request, Response

from config import WEB_SERVER_HOST, WEB_SERVER_PORT, WEB_COMMAND_TIMEOUT
from utils.validation import is_number
from .errors import EnduranceError, InvalidLoopWindow
from . import serializer

logger = logging.getLogger("EnduranceLoop.WebServer")


def get_local_ip():
    """Get the machine's local network IP address."""
    try:
        # Connect to a public DNS to determine local IP
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.settimeout(0.5)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except Exception:
        return "127.0.0.1"


# =========================================================================
# HTML PAGE (embedded - mobile-first)
# =========================================================================

MONITOR_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Endurance Loop Remote</title>
<style>
  body { font-family: -apple-system, 'Segoe UI', sans-serif; background: #0d1117;
         color: #e6edf3; margin: 0; padding: 12px; }
  h1 { font-size: 14px; color: #7d8590; }
  .master button { font-size: 16px; padding: 8px 14px; margin-right: 6px; }
  .track { background: #161b22; border: 1px solid #30363d; border-radius: 10px;
           padding: 12px; margin: 10px 0; }
  .track.looping { border-color: #58a6ff; }
  .stats { font-family: 'SF Mono', Consolas, monospace; font-size: 22px; }
  .dim { color: #7d8590; font-size: 12px; }
</style>
</head>
<body>
<h1>ENDURANCE LOOP REMOTE</h1>
<div class="master">
  <button onclick="master('play')">Play all</button>
  <button onclick="master('pause')">Pause all</button>
  <button onclick="master('reset')">Reset all</button>
</div>
<div id="tracks"></div>
<script>
function clock(s) {
  const h = Math.floor(s / 3600), m = Math.floor((s % 3600) / 60), sec = Math.floor(s % 60);
  return [h, m, sec].map(v => String(v).padStart(2, '0')).join(':');
}
async function master(action) {
  await fetch('/api/master/' + action, {method: 'POST'});
  poll();
}
async function poll() {
  try {
    const data = await (await fetch('/api/state')).json();
    document.getElementById('tracks').innerHTML = data.tracks.map(t => `
      <div class="track ${t.looping ? 'looping' : ''}">
        <div class="dim">#${t.id} ${t.video_id || '(no video)'} - ${t.state}</div>
        <div class="stats">${t.loop_count} loops / ${clock(t.elapsed_seconds)}</div>
        <div class="dim">${t.loop_start}s - ${t.loop_end}s, vol ${t.effective_volume}${t.muted ? ' (muted)' : ''}</div>
      </div>`).join('');
  } catch (e) {}
}
setInterval(poll, 1000);
poll();
</script>
</body>
</html>"""


# =========================================================================
# FLASK APP
# =========================================================================

def create_flask_app(session, scheduler):
    """Create and configure the Flask app."""
    app = Flask(__name__)
    app.logger.setLevel(logging.WARNING)  # Suppress request logs

    # Suppress werkzeug logs
    wlog = logging.getLogger('werkzeug')
    wlog.setLevel(logging.ERROR)

    def run(fn, *args):
        """Execute on the scheduler thread and return the result."""
        return scheduler.submit(fn, *args).result(timeout=WEB_COMMAND_TIMEOUT)

    def find_track(track_id):
        track = run(session.get_track, track_id)
        if track is None:
            return None, (jsonify({'error': 'not_found', 'message': f"No track {track_id}"}), 404)
        return track, None

    def body():
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}

    def body_value(key, valid, expected):
        """Read one field of the JSON body; a 400 response if it is unusable."""
        value = body().get(key)
        if not valid(value):
            message = f"'{key}' must be {expected}, got {value!r}"
            return None, (jsonify({'error': 'bad_request', 'message': message}), 400)
        return value, None

    def failure_dict(error):
        if isinstance(error, EnduranceError):
            return error.to_dict()
        return {'error': 'player_error', 'message': str(error)}

    @app.errorhandler(EnduranceError)
    def handle_error(error):
        status = 409 if isinstance(error, InvalidLoopWindow) else 400
        return jsonify(error.to_dict()), status

    @app.route('/')
    def index():
        return Response(MONITOR_HTML, mimetype='text/html')

    @app.route('/api/state')
    def api_state():
        return jsonify(run(session.snapshot))

    # --- Config document ---

    @app.route('/api/session', methods=['GET'])
    def api_export():
        include_stats = request.args.get('stats') in ('1', 'true', 'yes')
        return jsonify(run(serializer.export_session, session, include_stats))

    @app.route('/api/session', methods=['POST'])
    def api_import():
        document = request.get_data(as_text=True)
        tracks = run(serializer.import_session, document, session)
        return jsonify({'imported': len(tracks)})

    # --- Tracks ---

    @app.route('/api/tracks', methods=['POST'])
    def api_add_track():
        data = request.get_json(silent=True)
        config = serializer.parse_document([data])[0] if data else None
        track = run(session.add_track, config)
        return jsonify(run(track.snapshot)), 201

    @app.route('/api/tracks/<int:track_id>', methods=['DELETE'])
    def api_remove_track(track_id):
        if not run(session.remove_track, track_id):
            return jsonify({'error': 'not_found', 'message': f"No track {track_id}"}), 404
        return jsonify({'removed': track_id})

    @app.route('/api/tracks/<int:track_id>/<action>', methods=['POST'])
    def api_track_action(track_id, action):
        track, error = find_track(track_id)
        if error:
            return error

        if action == 'play':
            run(track.start)
        elif action == 'pause':
            run(track.pause)
        elif action == 'reset':
            run(track.reset)
        elif action == 'mute':
            run(track.toggle_mute)
        elif action == 'volume':
            volume, error = body_value('volume', is_number, "a number")
            if error:
                return error
            run(track.set_volume, volume)
        elif action == 'bind':
            run(track.bind, body().get('url', ''))
        else:
            return jsonify({'error': 'unknown_action', 'message': action}), 404
        return jsonify(run(track.snapshot))

    # --- Master ---

    @app.route('/api/master/<action>', methods=['POST'])
    def api_master(action):
        if action == 'play':
            failures = run(session.start_all)
        elif action == 'pause':
            failures = run(session.pause_all)
        elif action == 'reset':
            failures = run(session.reset_all)
        elif action == 'volume':
            volume, error = body_value('volume', is_number, "a number")
            if error:
                return error
            run(session.set_master_volume, volume)
            failures = {}
        elif action == 'mv':
            visible, error = body_value('visible', lambda v: isinstance(v, bool), "true or false")
            if error:
                return error
            run(session.set_all_mv_visibility, visible)
            failures = {}
        else:
            return jsonify({'error': 'unknown_action', 'message': action}), 404
        return jsonify({
            'failures': {str(track_id): failure_dict(e) for track_id, e in failures.items()},
            'state': run(session.snapshot),
        })

    return app


# =========================================================================
# SERVER MANAGER
# =========================================================================

class SessionWebServer:
    """
    Manages the Flask web server lifecycle.
    """

    def __init__(self, session, scheduler, port: int = WEB_SERVER_PORT, host: str = WEB_SERVER_HOST):
        self.session = session
        self.scheduler = scheduler
        self.port = port
        self.host = host
        self._thread: Optional[threading.Thread] = None
        self._server = None
        self.running = False
        self.url = ""

    def start(self) -> str:
        """Start the web server. Returns the URL."""
        if self.running:
            return self.url

        ip = get_local_ip()
        self.url = f"http://{ip}:{self.port}"

        app = create_flask_app(self.session, self.scheduler)

        # Use werkzeug's make_server for clean shutdown
        from werkzeug.serving import make_server
        self._server = make_server(self.host, self.port, app, threaded=True)

        def _run():
            logger.info(f"Web server starting on {self.url}")
            try:
                self._server.serve_forever()
            except Exception as e:
                logger.error(f"Web server error: {e}")
            finally:
                self.running = False
                logger.info("Web server stopped")

        self._thread = threading.Thread(target=_run, daemon=True)
        self._thread.start()
        self.running = True

        logger.info(f"Remote available at: {self.url}")
        return self.url

    def stop(self):
        """Stop the web server."""
        if self._server:
            self._server.shutdown()
            self._server = None
        self.running = False
        logger.info("Web server shutdown requested")

    def get_url(self) -> str:
        return self.url if self.running else ""
