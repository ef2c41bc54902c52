"""
Command-line interface for the IP monitor.

This module provides the main CLI entry point with commands for:
- resolve: Resolve one or more domains through the resolver pipeline
- detect-ip: Infer the public IP from ICE candidates (file or stdin)
- tabs: Show the tab snapshots saved by the background service
- native-host: Run the native resolver host on stdin/stdout
- config: Configuration management
"""

import argparse
import asyncio
import dataclasses
import json
import os
import sys
from pathlib import Path
from typing import Optional, TextIO

from dotenv import load_dotenv

from . import __version__
from . import native_host
from .audit_logger import AuditLogger
from .config import (
    LoggingConfig,
    PersistenceConfig,
    ResolverConfig,
    SystemConfig,
    WebRTCConfig,
)
from .enums import ConnectionSecurity, DisplayState
from .exceptions import PersistenceError, TamperingError
from .i18n import get_message
from .models import DomainRecord, ResolutionResult, TabState
from .registry import DomainRegistry, resolution_state
from .resolver import ResolverPipeline
from .snapshot_store import SnapshotStore
from .webrtc_extractor import (
    CandidateExtractor,
    candidates_from_sdp,
    check_ipv6_connectivity,
    detect_public_ip,
)


DEFAULT_CONFIG_DIR = Path.home() / ".ip_monitor"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.json"
LANGUAGES = ["en", "ru"]
HMAC_SECRET_ENV = "IP_MONITOR_HMAC_SECRET"
FALLBACK_HMAC_SECRET = "default-secret-change-me"


def default_hmac_secret() -> str:
    """Snapshot secret from the environment (or a .env file), else the fallback."""
    return os.getenv(HMAC_SECRET_ENV, "").strip() or FALLBACK_HMAC_SECRET


def create_default_config(
    language: str = "en",
    snapshot_path: Optional[Path] = None,
    hmac_secret: Optional[str] = None,
) -> SystemConfig:
    """
    Create a default system configuration.

    Args:
        language: Output language ('en' or 'ru')
        snapshot_path: Path to the tab snapshot file
        hmac_secret: Secret for HMAC protection of snapshots (default: $IP_MONITOR_HMAC_SECRET)

    Returns:
        SystemConfig with default settings
    """
    if snapshot_path is None:
        snapshot_path = DEFAULT_CONFIG_DIR / "tabs.json"
    if hmac_secret is None:
        hmac_secret = default_hmac_secret()

    return SystemConfig(
        resolver=ResolverConfig(),
        webrtc=WebRTCConfig(),
        persistence=PersistenceConfig(
            snapshot_path=snapshot_path,
            hmac_secret=hmac_secret,
            settings_path=DEFAULT_CONFIG_DIR / "settings.json",
        ),
        logging=LoggingConfig(level="info", output_format="text"),
        language=language,
    )


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        defaults = ResolverConfig()
        resolver_data = data.get("resolver", {})
        native_command = resolver_data.get("native_host_command")
        resolver = ResolverConfig(
            doh_endpoint=resolver_data.get("doh_endpoint", defaults.doh_endpoint),
            doh_timeout_seconds=float(resolver_data.get("doh_timeout_seconds", defaults.doh_timeout_seconds)),
            native_enabled=resolver_data.get("native_enabled", defaults.native_enabled),
            native_timeout_seconds=float(resolver_data.get("native_timeout_seconds", defaults.native_timeout_seconds)),
            native_host_command=list(native_command) if native_command else None,
            cache_ttl_seconds=float(resolver_data.get("cache_ttl_seconds", defaults.cache_ttl_seconds)),
            cache_capacity=int(resolver_data.get("cache_capacity", defaults.cache_capacity)),
            dedupe_inflight=resolver_data.get("dedupe_inflight", defaults.dedupe_inflight),
        )

        webrtc_defaults = WebRTCConfig()
        webrtc_data = data.get("webrtc", {})
        webrtc = WebRTCConfig(
            stun_servers=list(webrtc_data.get("stun_servers", webrtc_defaults.stun_servers)),
            gather_timeout_seconds=float(webrtc_data.get("gather_timeout_seconds", webrtc_defaults.gather_timeout_seconds)),
            ipv6_probe_url=webrtc_data.get("ipv6_probe_url", webrtc_defaults.ipv6_probe_url),
            ipv6_probe_timeout_seconds=float(webrtc_data.get(
                "ipv6_probe_timeout_seconds", webrtc_defaults.ipv6_probe_timeout_seconds,
            )),
        )

        persistence_data = data.get("persistence", {})
        snapshot_path = persistence_data.get("snapshot_path")
        settings_path = persistence_data.get("settings_path")
        persistence = PersistenceConfig(
            snapshot_path=Path(snapshot_path) if snapshot_path else DEFAULT_CONFIG_DIR / "tabs.json",
            hmac_secret=persistence_data.get("hmac_secret") or default_hmac_secret(),
            settings_path=Path(settings_path) if settings_path else None,
            max_snapshot_age_seconds=float(persistence_data.get("max_snapshot_age_seconds", 1800.0)),
        )

        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", "info"),
            audit_mode=logging_data.get("audit_mode", False),
            audit_signing_key=logging_data.get("audit_signing_key"),
            output_format=logging_data.get("output_format", "text"),
        )

        return SystemConfig(
            resolver=resolver,
            webrtc=webrtc,
            persistence=persistence,
            logging=logging_config,
            language=data.get("language", "en"),
        )

    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    except FileNotFoundError:
        return None


def config_to_dict(config: SystemConfig) -> dict:
    """Serialize a configuration in the layout load_config_from_file reads."""
    return {
        "resolver": dataclasses.asdict(config.resolver),
        "webrtc": dataclasses.asdict(config.webrtc),
        "persistence": {
            "snapshot_path": str(config.persistence.snapshot_path),
            "hmac_secret": config.persistence.hmac_secret,
            "settings_path": str(config.persistence.settings_path) if config.persistence.settings_path else None,
            "max_snapshot_age_seconds": config.persistence.max_snapshot_age_seconds,
        },
        "logging": dataclasses.asdict(config.logging),
        "language": config.language,
    }


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)
        return True
    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def _load_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    if getattr(args, "config", None):
        config = load_config_from_file(Path(args.config))
        if config is None:
            print(f"Error: Could not load config from {args.config}", file=sys.stderr)
            return None
    else:
        config = create_default_config()
    if getattr(args, "language", None):
        config = dataclasses.replace(config, language=args.language)
    return config


def _create_logger(config: SystemConfig, verbose: bool) -> Optional[AuditLogger]:
    if not verbose:
        return None
    return AuditLogger.from_config(dataclasses.replace(config.logging, level="debug"))


def describe_result(result: ResolutionResult, language: str) -> str:
    """One-line summary; local, unknown and empty results read differently."""
    state = resolution_state(result)
    if state is DisplayState.LOCAL:
        return get_message("state.local", language)
    if state is DisplayState.UNKNOWN:
        return get_message("state.unknown", language)
    if not result.ipv4 and not result.ipv6:
        return get_message("state.no_addresses", language)
    return get_message("state.resolved", language, resolver=result.resolver.value)


def print_result(domain: str, result: ResolutionResult, language: str, out: TextIO) -> None:
    print(get_message("cli.resolving_domain", language, domain=domain), file=out)
    print(f"  {describe_result(result, language)}", file=out)
    for address in result.ipv4:
        print(f"  IPv4: {address}", file=out)
    for address in result.ipv6:
        print(f"  IPv6: {address}", file=out)


async def resolve_domains(
    domains: list[str],
    config: SystemConfig,
    exclude_local_domains: bool = True,
    as_json: bool = False,
    logger: Optional[AuditLogger] = None,
    out: Optional[TextIO] = None,
) -> int:
    """
    Resolve domains concurrently and print the results.

    Returns:
        Exit code (0 if every domain produced a known result, 1 otherwise)
    """
    out = out or sys.stdout
    pipeline = ResolverPipeline.from_config(config.resolver, logger=logger)
    try:
        results = await asyncio.gather(*(
            pipeline.resolve(domain, exclude_local_domains=exclude_local_domains)
            for domain in domains
        ))
    finally:
        await pipeline.close()

    if as_json:
        json.dump(
            {domain: result.to_dict() for domain, result in zip(domains, results)},
            out, indent=2, ensure_ascii=False,
        )
        print(file=out)
    else:
        for domain, result in zip(domains, results):
            print_result(domain, result, config.language, out)

    unknown = [r for r in results if resolution_state(r) is DisplayState.UNKNOWN]
    return 1 if unknown else 0


def read_candidates(text: str) -> list[str]:
    """Accept SDP text or one candidate per line."""
    if "a=candidate:" in text:
        return candidates_from_sdp(text)
    return [line.strip() for line in text.splitlines() if line.strip()]


async def detect_ip(
    candidates: list[str],
    config: SystemConfig,
    probe_ipv6: bool = False,
    as_json: bool = False,
    logger: Optional[AuditLogger] = None,
    out: Optional[TextIO] = None,
) -> int:
    """
    Run candidate extraction over a finite candidate list.

    Returns:
        Exit code (0 if a public address was found, 1 otherwise)
    """
    out = out or sys.stdout
    language = config.language
    if not candidates:
        print(get_message("cli.no_candidates", language), file=sys.stderr)
        return 1

    # Input is already complete, waiting for more candidates is pointless
    extractor = CandidateExtractor(timeout=0, logger=logger)
    extractor.add_candidates(candidates)

    probe = None
    if probe_ipv6:
        async def probe() -> bool:
            return await check_ipv6_connectivity(
                config.webrtc.ipv6_probe_url,
                timeout=config.webrtc.ipv6_probe_timeout_seconds,
            )

    user_ip, report = await detect_public_ip(extractor, ipv6_probe=probe)

    if as_json:
        json.dump({
            "state": extractor.state.value,
            "userPublicIP": user_ip.to_dict(),
            "candidates": report.to_dict(),
        }, out, indent=2)
        print(file=out)
    else:
        not_detected = get_message("user_ip.not_detected", language)
        print(get_message("user_ip.title", language), file=out)
        print(f"  IPv4: {user_ip.ipv4 or not_detected}", file=out)
        print(f"  IPv6: {user_ip.ipv6 or not_detected}", file=out)
        if probe_ipv6:
            status = get_message("cli.yes" if user_ip.has_ipv6_connectivity else "cli.no", language)
            print(f"  {get_message('user_ip.ipv6_connectivity', language, status=status)}", file=out)
        if report.local:
            addresses = ", ".join(report.local)
            print(f"  {get_message('user_ip.local_addresses', language, addresses=addresses)}", file=out)

    return 0 if (user_ip.ipv4 or user_ip.ipv6) else 1


def describe_record(record: DomainRecord, language: str) -> str:
    """Status text for one recorded domain, including the loading state."""
    if record.resolution is None:
        return get_message("state.loading", language)
    return describe_result(record.resolution, language)


def print_tab(
    tab_id: int,
    tab: TabState,
    security: ConnectionSecurity,
    language: str,
    out: TextIO,
) -> None:
    main_domain = tab.main_domain or "-"
    print(get_message("cli.tab_header", language, tab_id=tab_id, main_domain=main_domain), file=out)
    print(f"  {get_message(f'security.{security.value}', language)}", file=out)
    for record in sorted(tab.domains.values(), key=lambda r: -r.request_count):
        print(
            f"  {record.domain} ({record.protocol}, {record.request_count}): "
            f"{describe_record(record, language)}",
            file=out,
        )
        if record.resolution is not None:
            for address in record.resolution.ipv4 + record.resolution.ipv6:
                print(f"    {address}", file=out)


def show_tabs(config: SystemConfig, as_json: bool = False, out: Optional[TextIO] = None) -> int:
    """
    Print the tabs persisted in the snapshot file.

    Returns:
        Exit code (1 if the snapshot cannot be read or was tampered with)
    """
    out = out or sys.stdout
    store = SnapshotStore(
        file_path=config.persistence.snapshot_path,
        hmac_secret=config.persistence.hmac_secret,
        max_age_seconds=config.persistence.max_snapshot_age_seconds,
    )
    registry = DomainRegistry(snapshot_store=store)
    try:
        registry.restore_all()
    except TamperingError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except PersistenceError as e:
        print(f"Error loading snapshot: {e.message}", file=sys.stderr)
        return 1

    tab_ids = sorted(registry.tab_ids())
    if as_json:
        json.dump({
            str(tab_id): dict(
                registry.get_snapshot(tab_id).to_dict(),
                connectionSecurity=registry.connection_security(tab_id).value,
            )
            for tab_id in tab_ids
        }, out, indent=2, ensure_ascii=False)
        print(file=out)
        return 0

    if not tab_ids:
        print(get_message("cli.no_tabs", config.language), file=out)
        return 0
    for tab_id in tab_ids:
        print_tab(
            tab_id,
            registry.get_snapshot(tab_id),
            registry.connection_security(tab_id),
            config.language,
            out,
        )
    return 0


def cmd_resolve(args: argparse.Namespace) -> int:
    """Handle the 'resolve' command."""
    config = _load_config(args)
    if config is None:
        return 1
    if args.no_native:
        config = dataclasses.replace(
            config, resolver=dataclasses.replace(config.resolver, native_enabled=False),
        )

    return asyncio.run(resolve_domains(
        domains=args.domains,
        config=config,
        exclude_local_domains=not args.include_local,
        as_json=args.json,
        logger=_create_logger(config, args.verbose),
    ))


def cmd_detect_ip(args: argparse.Namespace) -> int:
    """Handle the 'detect-ip' command."""
    config = _load_config(args)
    if config is None:
        return 1

    try:
        if args.file and args.file != "-":
            with open(args.file, "r", encoding="utf-8") as f:
                text = f.read()
        else:
            text = sys.stdin.read()
    except OSError as e:
        print(f"Error reading candidates: {e}", file=sys.stderr)
        return 1

    return asyncio.run(detect_ip(
        candidates=read_candidates(text),
        config=config,
        probe_ipv6=args.ipv6_probe,
        as_json=args.json,
        logger=_create_logger(config, args.verbose),
    ))


def cmd_tabs(args: argparse.Namespace) -> int:
    """Handle the 'tabs' command."""
    config = _load_config(args)
    if config is None:
        return 1
    return show_tabs(config, as_json=args.json)


def cmd_native_host(args: argparse.Namespace) -> int:
    """Handle the 'native-host' command."""
    return native_host.serve(sys.stdin.buffer, sys.stdout.buffer, timeout=args.timeout)


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  Language: {config.language}")
        print(f"  DoH endpoint: {config.resolver.doh_endpoint}")
        print(f"  Native resolver: {'enabled' if config.resolver.native_enabled else 'disabled'}")
        print(f"  Cache: {config.resolver.cache_capacity} entries, TTL {config.resolver.cache_ttl_seconds:g}s")
        print(f"  STUN servers: {', '.join(config.webrtc.stun_servers)}")
        print(f"  Snapshot file: {config.persistence.snapshot_path}")
        print(f"  Log level: {config.logging.level}")
        print(f"  Audit mode: {config.logging.audit_mode}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        config = create_default_config(language=args.language or "en")
        if save_config_to_file(config, config_path):
            print(f"Configuration created at: {config_path}")
            return 0
        return 1

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return 1

        problems = validate_config(config)
        if problems:
            for problem in problems:
                print(f"Error: {problem}", file=sys.stderr)
            return 1

        print(f"Configuration at {config_path} is valid.")
        return 0

    return 1


def validate_config(config: SystemConfig) -> list[str]:
    """Return human-readable problems; empty if the configuration is usable."""
    problems = []
    if not config.resolver.doh_endpoint.startswith("https://"):
        problems.append("resolver.doh_endpoint must be an https:// URL")
    if config.resolver.cache_capacity < 1:
        problems.append("resolver.cache_capacity must be at least 1")
    if config.resolver.cache_ttl_seconds <= 0:
        problems.append("resolver.cache_ttl_seconds must be positive")
    if config.resolver.native_timeout_seconds <= 0 or config.resolver.doh_timeout_seconds <= 0:
        problems.append("resolver timeouts must be positive")
    if config.logging.output_format not in ("json", "text", "both"):
        problems.append("logging.output_format must be 'json', 'text' or 'both'")
    if config.language not in LANGUAGES:
        problems.append(f"language must be one of: {', '.join(LANGUAGES)}")
    return problems


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="ip-monitor",
        description="Resolve the IP addresses behind domains and detect your public IP",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'resolve' command
    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Resolve one or more domains",
    )
    resolve_parser.add_argument(
        "domains",
        nargs="+",
        help="Domains to resolve (e.g., example.com)",
    )
    resolve_parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON",
    )
    resolve_parser.add_argument(
        "--include-local",
        action="store_true",
        help="Also resolve local domains (through the system resolver only)",
    )
    resolve_parser.add_argument(
        "--no-native",
        action="store_true",
        help="Skip the native system resolver",
    )
    resolve_parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    resolve_parser.add_argument(
        "--language", "-l",
        choices=LANGUAGES,
        help="Output language",
    )
    resolve_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )
    resolve_parser.set_defaults(func=cmd_resolve)

    # 'detect-ip' command
    detect_parser = subparsers.add_parser(
        "detect-ip",
        help="Detect the public IP from ICE candidates",
    )
    detect_parser.add_argument(
        "file",
        nargs="?",
        help="File with SDP or one candidate per line (default: stdin)",
    )
    detect_parser.add_argument(
        "--ipv6-probe",
        action="store_true",
        help="Also check IPv6 connectivity",
    )
    detect_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )
    detect_parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    detect_parser.add_argument(
        "--language", "-l",
        choices=LANGUAGES,
        help="Output language",
    )
    detect_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )
    detect_parser.set_defaults(func=cmd_detect_ip)

    # 'tabs' command
    tabs_parser = subparsers.add_parser(
        "tabs",
        help="Show saved tab snapshots",
    )
    tabs_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the snapshots as JSON",
    )
    tabs_parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    tabs_parser.add_argument(
        "--language", "-l",
        choices=LANGUAGES,
        help="Output language",
    )
    tabs_parser.set_defaults(func=cmd_tabs)

    # 'native-host' command
    host_parser = subparsers.add_parser(
        "native-host",
        help="Run the native resolver host on stdin/stdout",
    )
    host_parser.add_argument(
        "--timeout",
        type=float,
        default=native_host.DEFAULT_LOOKUP_TIMEOUT,
        help="Lookup timeout in seconds",
    )
    host_parser.set_defaults(func=cmd_native_host)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.add_argument(
        "--language", "-l",
        choices=LANGUAGES,
        help="Default language for new configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    load_dotenv()
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
