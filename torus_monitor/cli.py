# torus_monitor/cli.py
import argparse

def build_parser():
    parser = argparse.ArgumentParser(
        prog="torus-monitor",
        description="Torus power conditioner telemetry bridge (portal + local fallback -> Pushgateway)"
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Optional INI config file; environment variables override it"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug logging"
    )

    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress console logging (cron-friendly)"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit JSON instead of human-readable text (probe only)"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    # Bounded polling job
    sub.add_parser("run", help="Poll and push metrics for the configured job duration")

    # One-shot diagnostics
    sub.add_parser(
        "probe",
        help="Log in, read cloud and local data once, print without pushing",
    )

    return parser
