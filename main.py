#!/usr/bin/env python3
"""
Endurance Loop - Repeat video segments for hours, one or many at a time.

Runs a session of looping tracks headless on the simulated player, with
the web remote serving a monitor page and a control API on the local
network.

Usage:
    python main.py --video https://youtu.be/dQw4w9WgXcQ --start 0:10 --end 0:25
    python main.py --session my_session.json --autoplay
"""

import os
import sys
import logging
import argparse
from datetime import datetime

from config import (
    LOG_DIR, SESSION_FILE,
    DEFAULT_MASTER_VOLUME, WEB_SERVER_PORT,
)
from backend import Scheduler, Session, SimulatedPlayerFactory, TrackConfig, EnduranceError
from backend import serializer
from backend.web_server import SessionWebServer
from utils.formatting import parse_time, format_clock, split_minutes
from utils.preferences import (
    get_master_volume_preference, set_master_volume_preference,
    get_port_preference, set_port_preference,
)

# =============================================================================
# UTILS
# =============================================================================

def setup_logging(debug: bool = False) -> logging.Logger:
    os.makedirs(LOG_DIR, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(LOG_DIR, f"endurance_loop_{timestamp}.log")

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s.%(msecs)03d [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout), logging.FileHandler(log_file)]
    )
    return logging.getLogger("EnduranceLoop")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Loop video segments for endurance listening.")
    parser.add_argument("--session", default=None, help="Config document to import at startup")
    parser.add_argument("--video", action="append", default=[],
                        help="Video URL or id to add as a track (repeatable)")
    parser.add_argument("--start", default="0:00", help="Loop start for --video tracks (M:SS)")
    parser.add_argument("--end", default=None, help="Loop end for --video tracks (M:SS)")
    parser.add_argument("--master-volume", type=int, default=None)
    parser.add_argument("--autoplay", action="store_true", help="Start all tracks once loaded")
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--no-web", action="store_true", help="Do not start the web remote")
    parser.add_argument("--save", default=None,
                        help=f"Write the session document here on exit (default {SESSION_FILE})")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)

    for flag, text in (("--start", args.start), ("--end", args.end)):
        if text is not None and parse_time(text) is None:
            parser.error(f"{flag}: not a time (M:SS, H:MM:SS or seconds): {text!r}")
    return args


def build_track_config(reference: str, start_text: str, end_text) -> TrackConfig:
    start = parse_time(start_text) or 0
    end = parse_time(end_text) if end_text else 0
    start_min, start_sec = split_minutes(start)
    end_min, end_sec = split_minutes(end or 0)
    return TrackConfig(video_ref=reference, start_min=start_min, start_sec=start_sec,
                       end_min=end_min, end_sec=end_sec)


def resolve_port(port_arg, prefs_path=None) -> int:
    """Port for the web remote. An explicit port becomes the saved preference."""
    if port_arg:
        set_port_preference(port_arg, prefs_path)
        return port_arg
    return get_port_preference(prefs_path) or WEB_SERVER_PORT


def autoplay_when_ready(session: Session, logger: logging.Logger) -> None:
    """Start each track as soon as its player reports ready."""
    def _start(track, duration):
        try:
            track.start()
        except EnduranceError as e:
            logger.warning(f"Autoplay skipped track {track.id}: {e}")

    for track in session:
        track.on('ready', _start)


def log_progress(session: Session, logger: logging.Logger) -> None:
    for track in session:
        track.on('loop', lambda t, count: logger.info(
            f"Track {t.id}: loop {count} ({format_clock(t.elapsed_seconds, include_hours=True)})"))


# =============================================================================
# MAIN
# =============================================================================

def main(argv=None):
    args = parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.info("Endurance Loop Starting")

    master_volume = args.master_volume
    if master_volume is None:
        master_volume = get_master_volume_preference()
    if master_volume is None:
        master_volume = DEFAULT_MASTER_VOLUME

    scheduler = Scheduler()
    session = Session(scheduler, SimulatedPlayerFactory(scheduler), master_volume=master_volume)
    session.on('notify', lambda message, kind: logger.info(f"[{kind.upper()}] {message}"))

    # 1. LOAD TRACKS
    try:
        if args.session:
            serializer.import_session_file(args.session, session)
        for reference in args.video:
            session.add_track(build_track_config(reference, args.start, args.end))
    except EnduranceError as e:
        logger.error(f"Could not load tracks: {e}")
        sys.exit(1)

    if not len(session):
        logger.warning("No tracks loaded. Add some through the web remote.")

    log_progress(session, logger)
    if args.autoplay:
        autoplay_when_ready(session, logger)

    # 2. WEB REMOTE (started from inside the scheduler loop so that
    # requests are routed onto the scheduler thread)
    server = None
    if not args.no_web:
        port = resolve_port(args.port)
        server = SessionWebServer(session, scheduler, port=port)
        scheduler.call_later(0, server.start)

    # 3. RUN
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        if server:
            server.stop()
        save_path = args.save or SESSION_FILE
        try:
            if os.path.dirname(save_path):
                os.makedirs(os.path.dirname(save_path), exist_ok=True)
            serializer.export_session_file(save_path, session, include_stats=True)
        except OSError as e:
            logger.error(f"Could not save session: {e}")
        set_master_volume_preference(session.master_volume)
        session.clear()
        logger.info("Endurance Loop Exiting")


if __name__ == "__main__":
    main()
