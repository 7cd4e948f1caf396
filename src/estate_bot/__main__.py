"""CLI entry point for estate-bot."""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid

from estate_bot.app import PROVIDER_NAMES, EstateBotApp
from estate_bot.config import AppConfig, load_config
from estate_bot.core.types import QueryType
from estate_bot.log import setup_logging


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    parser.add_argument("-e", "--env", default=".env", help="Path to .env file")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="estate-bot",
        description="Real-estate chatbot with FAQ/cache/data cascade and multi-provider AI routing",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    chat_parser = subparsers.add_parser("chat", help="Interactive chat in the terminal")
    _add_config_args(chat_parser)
    chat_parser.add_argument("-s", "--session", default=None, help="Session key to resume")

    ask_parser = subparsers.add_parser("ask", help="Answer a single question")
    _add_config_args(ask_parser)
    ask_parser.add_argument("question", help="Question text")
    ask_parser.add_argument("-s", "--session", default="cli", help="Session key")

    check_parser = subparsers.add_parser("config-check", help="Validate configuration")
    _add_config_args(check_parser)

    model_parser = subparsers.add_parser("model-info", help="Show providers and routing chains")
    _add_config_args(model_parser)

    faq_parser = subparsers.add_parser("faq-import", help="Import FAQ entries from a YAML file")
    _add_config_args(faq_parser)
    faq_parser.add_argument("path", help="YAML file with question/answer/keywords/category entries")

    args = parser.parse_args()

    if args.command is None:
        args.command = "chat"
        args.config = "config.yaml"
        args.env = ".env"
        args.session = None

    if args.command == "config-check":
        _check_config(args.config, args.env)
    elif args.command == "model-info":
        _model_info(args.config, args.env)
    elif args.command == "faq-import":
        config = _load(args.config, args.env)
        asyncio.run(_faq_import(config, args.path))
    elif args.command == "ask":
        config = _load(args.config, args.env)
        asyncio.run(_ask(config, args.session, args.question))
    elif args.command == "chat":
        config = _load(args.config, args.env)
        asyncio.run(_chat(config, args.session or f"cli-{uuid.uuid4().hex[:8]}"))


def _load(config_path: str, env_path: str) -> AppConfig:
    try:
        config = load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Copy config.example.yaml to config.yaml first")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    setup_logging(config.log_level, config.json_logs)
    return config


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    try:
        config = load_config(config_path, env_path)
        print(f"Configuration valid: {config_path}")
        print(f"  Data directory: {config.data_dir}")
        print(f"  Storage: {config.storage.db_path}")
        print(f"  Listings: {config.data.listings_path}")
        for name in PROVIDER_NAMES:
            provider = getattr(config.providers, name)
            state = "configured" if provider.api_key else "no api key"
            print(f"    - {name}: {provider.default_model} ({state})")
        print(f"  Routing enabled: {config.routing.enabled}")
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _model_info(config_path: str, env_path: str) -> None:
    """Show provider settings and the resolved routing chain per query type."""
    config = _load(config_path, env_path)
    app = EstateBotApp(config)
    providers = {name: app.create_provider(name) for name in PROVIDER_NAMES}

    from estate_bot.ai.router import ModelRouter

    router = ModelRouter(providers, config.routing, app.tool_registry)
    stats = router.get_stats()

    print("AI Provider Configuration")
    print("=" * 50)
    for name, adapter in providers.items():
        print(f"\n  Provider: {name}")
        print(f"    Model   : {adapter.default_model}")
        print(f"    API key : {'yes' if adapter.has_credentials else 'no'}")
        print(f"    Tools   : {'yes' if adapter.supports_function_calling() else 'no'}")
        print(f"    Limit   : {adapter.config.daily_message_limit}/day")
        print(f"    Cost    : rank {router.cost_rank(name)}")
    print("\nRouting chains")
    for query_type in QueryType:
        chain = stats["chains"][str(query_type)]
        print(f"  {query_type}: {' -> '.join(chain) if chain else '(no providers)'}")
    print()


async def _faq_import(config: AppConfig, path: str) -> None:
    app = EstateBotApp(config)
    await app.db.initialize()
    try:
        added = await app.import_faq(path)
        print(f"Imported {added} FAQ entries")
    finally:
        await app.stop()


async def _ask(config: AppConfig, session_key: str, question: str) -> None:
    app = EstateBotApp(config)
    await app.start()
    try:
        reply = await app.handler.handle(session_key, question)  # type: ignore[union-attr]
        if reply is not None:
            print(reply.text)
            print(f"\n[{reply.source} | confidence {reply.confidence:.2f} | tokens {reply.tokens_used}]")
    finally:
        await app.stop()


async def _chat(config: AppConfig, session_key: str) -> None:
    app = EstateBotApp(config)
    await app.start()
    print(f"{config.bot.name} (session {session_key}). /reset starts over, /quit exits.")
    try:
        while True:
            try:
                text = await asyncio.to_thread(input, "> ")
            except (EOFError, KeyboardInterrupt):
                break
            if text.strip().lower() in ("/quit", "/exit"):
                break
            reply = await app.handler.handle(session_key, text)  # type: ignore[union-attr]
            if reply is not None:
                print(reply.text)
    finally:
        await app.stop()


if __name__ == "__main__":
    main()
