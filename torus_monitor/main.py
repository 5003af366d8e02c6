# torus_monitor/main.py

from __future__ import annotations

import configparser
import sys
import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from .cli import build_parser
from .config import AppConfig, Config
from .logging import ConsoleLog

from .models.arbitration import ArbitrationState
from .services.arbitrator import ArbitrationController
from .services.authenticator import Authenticator
from .services.cloud_source import CloudSource
from .services.local_scraper import LocalScraper
from .services.metric_emitter import MetricEmitter
from .services.output_formatter import emit_human, emit_json
from .services.portal_client import PortalClient
from .services.scheduler import PollScheduler


EXIT_OK = 0
EXIT_FATAL = 1


@dataclass
class Services:
    portal: PortalClient
    authenticator: Authenticator
    cloud: CloudSource
    local: LocalScraper
    emitter: MetricEmitter


def build_services(
    app_cfg: AppConfig,
    log,
    *,
    portal_session: Optional[requests.Session] = None,
    local_session: Optional[requests.Session] = None,
    push_session: Optional[requests.Session] = None,
) -> Services:
    portal = PortalClient(app_cfg.portal, log, session=portal_session)
    return Services(
        portal=portal,
        authenticator=Authenticator(app_cfg.portal, portal, log),
        cloud=CloudSource(app_cfg.portal, portal, log),
        local=LocalScraper(app_cfg.local, log, session=local_session),
        emitter=MetricEmitter(app_cfg.pushgateway, log, session=push_session),
    )


def log_startup(app_cfg: AppConfig, log) -> None:
    sched = app_cfg.schedule
    log.info("Starting job. Duration: %ss, Interval: %ss", sched.job_duration, sched.poll_interval)
    if app_cfg.local.enabled:
        log.info(
            "Local fallback enabled: %s (rate limit: %ss)",
            app_cfg.local.url,
            app_cfg.local.scrape_interval,
        )
    if app_cfg.portal.device_timezone_offset != 0:
        log.info("Timezone offset applied: %s hours", app_cfg.portal.device_timezone_offset)
    log.info("Cloud back-off enabled: %s", app_cfg.arbitration.enable_cloud_backoff)


def run_job(
    app_cfg: AppConfig,
    services: Services,
    log,
    *,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    if not app_cfg.pushgateway.url:
        log.error("Fatal error: PUSHGATEWAY_URL is not configured")
        return EXIT_FATAL

    log_startup(app_cfg, log)

    try:
        services.authenticator.login()
    except Exception as exc:
        log.error("Fatal error during login: %s", exc)
        return EXIT_FATAL

    controller = ArbitrationController(
        app_cfg.arbitration,
        services.cloud,
        services.local,
        log,
        local_scrape_interval=app_cfg.local.scrape_interval,
    )
    state = ArbitrationState.start(int(clock()))

    def _iteration(iteration: int) -> None:
        nonlocal state
        now = int(clock())
        decision = controller.step(state, now, iteration)
        state = decision.state
        if not decision.should_emit:
            return
        services.emitter.push(decision.record, decision.source, now)
        log.info("Iteration %d: data pushed (source: %s).", iteration, decision.source.name)

    log.info("Polling loop (hybrid)...")
    scheduler = PollScheduler(
        app_cfg.schedule.poll_interval,
        app_cfg.schedule.job_duration,
        log,
        clock=clock,
        sleep=sleep,
    )
    iterations = scheduler.run(_iteration)
    log.info("Job complete after %d iterations.", iterations)
    return EXIT_OK


def run_probe(app_cfg: AppConfig, services: Services, log, *, as_json: bool = False) -> int:
    try:
        services.authenticator.login()
    except Exception as exc:
        log.error("Fatal error during login: %s", exc)
        return EXIT_FATAL

    now = int(time.time())
    cloud = None
    try:
        cloud = services.cloud.fetch()
    except Exception as exc:
        log.warning("Cloud fetch failed: %s", exc)

    local = services.local.scrape() if services.local.enabled else None

    if as_json:
        emit_json(cloud, local, now=now)
    else:
        emit_human(cloud, local, now=now)
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Console logging first so config errors are visible.
    log = ConsoleLog(level="DEBUG" if args.debug else "INFO", quiet=args.quiet).setup()
    try:
        app_cfg = Config.load(args.config)
    except (ValueError, FileNotFoundError, configparser.Error) as exc:
        log.error("Fatal error: %s", exc)
        return EXIT_FATAL

    log = ConsoleLog(
        level="DEBUG" if args.debug else app_cfg.logging.console_level,
        quiet=args.quiet,
        debug_modules=app_cfg.logging.debug_modules,
    ).setup()

    services = build_services(app_cfg, log)

    if args.command == "run":
        return run_job(app_cfg, services, log)
    if args.command == "probe":
        return run_probe(app_cfg, services, log, as_json=args.json)
    raise ValueError(f"Unsupported command: {args.command}")


def console_main() -> None:
    sys.exit(main())


if __name__ == "__main__":
    console_main()
