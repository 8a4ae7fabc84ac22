#!/usr/bin/env python3
"""
Command-line interface for the order fan-out demo.

Usage:
    uv run python cli.py [command] [options]

Commands:
    demo        Run demo scenarios on the in-memory broker
    worker      Run the shipping worker against the configured broker
    serve       Start the order API server
    test        Run the test suite

Examples:
    uv run python cli.py demo order-shipped
    uv run python cli.py demo redelivery
    uv run python cli.py worker
    uv run python cli.py serve --reload
"""

import argparse
import logging
import signal
import subprocess
import sys
from typing import Optional


def run_demo(scenario: str) -> None:
    """Run a demo scenario."""
    from pipeline import demo

    if scenario == "order-shipped":
        demo.run_order_shipped_demo()
    elif scenario == "redelivery":
        demo.run_redelivery_demo()
    elif scenario == "poison":
        demo.run_poison_message_demo()
    elif scenario == "all":
        demo.run_all_demos()
    else:
        print(f"Unknown scenario: {scenario}")
        sys.exit(1)


def run_worker(queue: str = None) -> None:
    """Run a shipping worker until SIGINT/SIGTERM."""
    from broker import build_broker
    from pipeline.consumer import QueueConsumer
    from pipeline.shipping import ShippingProcessor
    from shared.channels import EmailChannel, SESEmailChannel
    from shared.config import PipelineConfig

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
        datefmt="%H:%M:%S",
    )

    config = PipelineConfig.from_env()
    if queue:
        config = config.model_copy(update={"queue": queue})

    if config.broker_backend == "aws":
        channel = SESEmailChannel.from_config(config)
    else:
        channel = EmailChannel()

    consumer = QueueConsumer(build_broker(config), ShippingProcessor(channel, config), config)

    def _shutdown(signum, frame):
        logging.getLogger("worker").info(f"Received signal {signum}, stopping after current message")
        consumer.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    consumer.run()


def run_tests(args: list[str]) -> None:
    """Run the test suite."""
    cmd = ["uv", "run", "pytest"] + args
    subprocess.run(cmd)


def run_server(host: str, port: Optional[int], reload: bool) -> None:
    """Start the API server (port defaults to PORT from the environment)."""
    if port is None:
        from shared.config import PipelineConfig

        port = PipelineConfig.from_env().port

    cmd = ["uv", "run", "uvicorn", "api.main:app", f"--host={host}", f"--port={port}"]
    if reload:
        cmd.append("--reload")

    print(f"Starting server at http://{host}:{port}")
    print(f"API docs available at http://{host}:{port}/docs")
    subprocess.run(cmd)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Order Fan-out Demo CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s demo order-shipped
  %(prog)s demo all
  %(prog)s worker --queue shipping
  %(prog)s test -v
  %(prog)s serve --reload
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Run demo scenarios")
    demo_parser.add_argument(
        "scenario",
        choices=["order-shipped", "redelivery", "poison", "all"],
        help="Which scenario to run",
    )

    # Worker command
    worker_parser = subparsers.add_parser("worker", help="Run the shipping worker")
    worker_parser.add_argument("--queue", default=None, help="Queue URL/name (overrides SHIPPING_QUEUE_URL)")

    # Test command
    test_parser = subparsers.add_parser("test", help="Run the test suite")
    test_parser.add_argument(
        "pytest_args",
        nargs="*",
        default=[],
        help="Arguments to pass to pytest",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to bind to (default: PORT or 5001)")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()

    if args.command == "demo":
        run_demo(args.scenario)
    elif args.command == "worker":
        run_worker(args.queue)
    elif args.command == "test":
        run_tests(args.pytest_args)
    elif args.command == "serve":
        run_server(args.host, args.port, args.reload)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
