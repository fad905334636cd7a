import argparse
import asyncio
import sys
from uuid import uuid4

from dotenv import load_dotenv
from loguru import logger

from vet_agent_loop.app_config import load_json_config, parse_app_config, resolve_runtime_env
from vet_agent_loop.bootstrap import bootstrap_runtime


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="vet-agent-loop",
        description="Chat with the pet assistant from the console, as if over WhatsApp.",
    )
    parser.add_argument("--identity", default="+10000000000", help="Phone number to chat as")
    parser.add_argument(
        "--no-message-ids",
        action="store_true",
        help="Deliver messages without inbound ids (disables duplicate-delivery checks)",
    )
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    load_dotenv()

    app = parse_app_config(load_json_config())
    env = resolve_runtime_env(app.provider_name)
    if not env.provider_api_key:
        print(f"{env.provider_env_var} environment variable is required.", file=sys.stderr)
        sys.exit(1)

    runtime = await bootstrap_runtime(app, env)

    print("vet-agent-loop (type 'exit' to quit)")
    print(f"Identity: {args.identity}")
    print("Tools:")
    for name in runtime.registry.names():
        print(f"  - {name}")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    try:
        while True:
            try:
                user_input = input("you> ")
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()
            if trimmed in ("exit", "quit"):
                break
            if not trimmed:
                continue

            message_id = None if args.no_message_ids else f"cli-{uuid4().hex}"
            reply = await runtime.agent.execute(args.identity, trimmed, message_id)
            print(f"assistant> {reply}\n")
    finally:
        await runtime.close()
        logger.complete()


if __name__ == "__main__":
    asyncio.run(main())
