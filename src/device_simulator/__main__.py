"""
Entry point for the device-simulator CLI.

Usage:
    device-simulator             Run the simulated device against the hub
    device-simulator --offline   Run against the in-memory transport
    device-simulator --test      Validate configuration and connection, then exit
    device-simulator --help      Show help message
    device-simulator --version   Show version and exit

Exit Codes:
    0 - Success
    1 - Configuration error (invalid settings, missing required values)
    2 - Connection error (cannot reach the hub)
    3 - Setup error (handler registration failed)
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import TYPE_CHECKING, Any, List, Optional

if TYPE_CHECKING:
    from device_simulator.config import DeviceSettings

from device_simulator import __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_CONNECTION_ERROR = 2
EXIT_SETUP_ERROR = 3


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="device-simulator",
        description="Simulated cellular IoT security device",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit Codes:
  0   Success
  1   Configuration error
  2   Connection error (cannot reach hub)
  3   Setup error (handler registration failed)

Environment Variables:
  CONFIG_PATH                        Path to YAML configuration file
  DEVICE_DEVICE_ID                   Device identity
  DEVICE_HUB_URL                     Hub WebSocket URL (ws:// or wss://)
  DEVICE_HUB_TOKEN                   Bearer token for the hub
  DEVICE_HUB_TOKEN_FILE              Path to file containing the token (Docker secrets)
  DEVICE_TELEMETRY_INTERVAL_SECONDS  Initial telemetry interval (default: 5)
  DEVICE_LOG_LEVEL                   Logging level: DEBUG, INFO, WARNING, ERROR
  DEVICE_LOG_FORMAT                  Log format: json or text

Examples:
  # Run against a hub
  DEVICE_HUB_URL=wss://hub.example.com/devices/sim-1 device-simulator

  # Test configuration and connection
  device-simulator --test

  # Run without a hub
  DEVICE_LOG_FORMAT=text device-simulator --offline
""",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Test configuration and connection, then exit",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Run against the in-memory transport instead of a hub",
    )
    return parser.parse_args(argv)


def print_banner(config: "DeviceSettings", offline: bool = False) -> None:
    """Print startup banner with version and configuration summary."""
    lines = [
        "",
        f"Device Simulator v{__version__}",
        "=" * 40,
        f"Device ID:  {config.device_id}",
        f"Firmware:   {config.firmware_version}",
        f"Hub:        {'offline' if offline else config.hub_url}",
        f"Interval:   {config.telemetry_interval_seconds}s",
        f"Log Level:  {config.log_level}",
        f"Log Format: {config.log_format}",
        "=" * 40,
        "",
    ]
    for line in lines:
        print(line)


async def check_connection(config: "DeviceSettings") -> None:
    """Connect to the hub once and disconnect.

    Raises:
        TransportFailure: If the hub cannot be reached.
    """
    from device_simulator.device import create_transport

    transport = create_transport(config)
    await transport.connect()
    await transport.close()


async def run_device(config: "DeviceSettings", offline: bool, log: Any) -> int:
    """Run the device until SIGINT/SIGTERM.

    Returns:
        Exit code.
    """
    from device_simulator.device import build_device, create_transport
    from device_simulator.exceptions import SetupFailure, TransportFailure

    device = build_device(config, create_transport(config, offline=offline))

    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, device.telemetry.stop)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; KeyboardInterrupt still applies
            pass

    try:
        try:
            await device.transport.connect()
        except TransportFailure as e:
            log.error("connection_failed", error=e.message)
            print(f"\nConnection error: {e}", file=sys.stderr)
            return EXIT_CONNECTION_ERROR

        try:
            await device.telemetry.start()
        except SetupFailure as e:
            log.error("setup_failed", error=e.message)
            print(f"\nSetup error: {e}", file=sys.stderr)
            return EXIT_SETUP_ERROR
        finally:
            await device.transport.close()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)

    log.info("shutdown", reason="stop requested")
    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for device-simulator.

    Returns:
        Exit code (0=success, 1=config error, 2=connection error, 3=setup error)
    """
    args = parse_args(argv)

    # Import here so --help and --version work without a valid environment
    from device_simulator.config import ConfigurationError, load_config
    from device_simulator.exceptions import TransportFailure
    from device_simulator.health import clear_health_status
    from device_simulator.logging import configure_logging, get_logger

    try:
        config = load_config()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except SystemExit as e:
        # Validation errors cause sys.exit(1) in loader
        return e.code if isinstance(e.code, int) else EXIT_CONFIG_ERROR

    configure_logging(
        log_format=config.log_format, log_level=config.log_level, device_id=config.device_id
    )
    log = get_logger()

    if not args.offline and not config.hub_url:
        print(
            "Configuration error: 'hub_url' is required. "
            "Set DEVICE_HUB_URL or run with --offline.",
            file=sys.stderr,
        )
        return EXIT_CONFIG_ERROR

    if args.test:
        print_banner(config, offline=args.offline)
        if args.offline:
            print("Configuration: OK")
            return EXIT_SUCCESS
        try:
            asyncio.run(check_connection(config))
        except TransportFailure as e:
            log.error("connection_failed", error=e.message)
            print(f"\nConnection error: {e}", file=sys.stderr)
            return EXIT_CONNECTION_ERROR
        print("Configuration and connection: OK")
        return EXIT_SUCCESS

    print_banner(config, offline=args.offline)
    log.info("starting", version=__version__, device_id=config.device_id, offline=args.offline)

    try:
        return asyncio.run(run_device(config, args.offline, log))
    except KeyboardInterrupt:
        log.info("shutdown", reason="keyboard interrupt")
        print("\nShutdown requested, exiting...")
        return EXIT_SUCCESS
    finally:
        if config.health_file:
            clear_health_status(config.health_file)


if __name__ == "__main__":
    sys.exit(main())
