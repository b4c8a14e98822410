"""
Command-line entry point: send one prompt and stream the reply to stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import TextIO

from src.config import Configuration
from src.llm import (
    ArkClient,
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChunkAccumulator,
    ClientConfig,
    EmbeddingsRequest,
    ImagePart,
    ImageUrl,
    LLMError,
    SystemMessage,
    TextPart,
    Usage,
    UserMessage,
    VisionRequest,
)
from src.llm.models import EmbeddingUsage

EXIT_INTERRUPTED = 130


class PrintingConsumer(ChunkAccumulator):
    """Echoes content deltas as they arrive while accumulating the reply."""

    def __init__(self, out: TextIO | None = None):
        super().__init__()
        self.out = out or sys.stdout

    def on_message(self, chunk: ChatCompletionChunk) -> None:
        super().on_message(chunk)
        for choice in chunk.choices:
            if choice.index == 0 and choice.delta.content:
                self.out.write(choice.delta.content)
                self.out.flush()

    def on_end(self) -> None:
        super().on_end()
        self.out.write("\n")
        self.out.flush()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ark-chat", description="Chat with an Ark model endpoint."
    )
    parser.add_argument("prompt", help="user message to send")
    parser.add_argument("--system", help="optional system prompt")
    parser.add_argument("--model", help="override the configured endpoint ID")
    parser.add_argument("--config", help="path to a config.yaml file")
    parser.add_argument(
        "--image",
        metavar="URL",
        help="attach an image; the vision endpoint answers",
    )
    parser.add_argument(
        "--embed",
        action="store_true",
        help="print embedding sizes for the prompt instead of chatting",
    )
    parser.add_argument(
        "--no-stream",
        action="store_true",
        help="wait for the complete reply instead of streaming",
    )
    return parser


def build_request(
    args: argparse.Namespace, client_config: ClientConfig
) -> ChatCompletionRequest | VisionRequest:
    """Chat request, or a vision request when ``--image`` is given."""
    messages: list[SystemMessage | UserMessage] = []
    if args.system:
        messages.append(SystemMessage(content=args.system))

    if args.image:
        model = args.model or client_config.vision_model
        messages.append(UserMessage(content=[
            TextPart(text=args.prompt),
            ImagePart(image_url=ImageUrl(url=args.image)),
        ]))
        request_cls = VisionRequest
    else:
        model = args.model or client_config.model
        messages.append(UserMessage(content=args.prompt))
        request_cls = ChatCompletionRequest

    if not model:
        raise ValueError("No model configured; pass --model or set it in config.yaml")
    return request_cls(model=model, messages=messages)


def build_embeddings_request(
    args: argparse.Namespace, client_config: ClientConfig
) -> EmbeddingsRequest:
    model = args.model or client_config.embedding_model
    if not model:
        raise ValueError(
            "No embedding model configured; pass --model or set "
            "embedding_model in config.yaml"
        )
    return EmbeddingsRequest(model=model, input=[args.prompt])


def format_usage(usage: Usage | EmbeddingUsage) -> str:
    parts = [f"prompt={usage.prompt_tokens}"]
    completion = getattr(usage, "completion_tokens", None)
    if completion is not None:
        parts.append(f"completion={completion}")
    parts.append(f"total={usage.total_tokens}")
    return "Usage: " + " ".join(parts)


async def run_chat(args: argparse.Namespace, configuration: Configuration) -> int:
    """Run one exchange, printing the reply and the reported usage."""
    client_config = ClientConfig.from_configuration(configuration)

    usage: Usage | EmbeddingUsage | None
    async with ArkClient(client_config) as client:
        if args.embed:
            embeddings = await client.embeddings(
                build_embeddings_request(args, client_config)
            )
            for item in embeddings.data:
                print(f"[{item.index}] {len(item.embedding)} values")
            usage = embeddings.usage
        elif args.no_stream:
            request = build_request(args, client_config)
            if isinstance(request, VisionRequest):
                response = await client.vision_completion(request)
            else:
                response = await client.chat_completion(request)
            reply = response.choices[0].message.content if response.choices else None
            print(reply or "")
            usage = response.usage
        else:
            consumer = PrintingConsumer()
            await client.chat_completion_stream(
                build_request(args, client_config), consumer
            )
            usage = consumer.usage

    if usage is not None:
        print(format_usage(usage))
    return 0


async def main(argv: list[str] | None = None) -> int:
    """Main entry point with graceful interrupt handling."""
    args = build_parser().parse_args(argv)

    try:
        configuration = Configuration(args.config)
    except (OSError, ValueError) as e:
        logging.error(f"Configuration error: {e}")
        return 1

    logging.basicConfig(
        level=configuration.get_logging_config().get("level", "INFO"),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    task = asyncio.create_task(run_chat(args, configuration))

    # Cancel the running stream on SIGINT/SIGTERM
    if sys.platform != "win32":
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, task.cancel)

    try:
        return await task
    except asyncio.CancelledError:
        logging.info("Interrupted, stream abandoned")
        return EXIT_INTERRUPTED
    except (LLMError, ValueError) as e:
        logging.error(f"Request failed: {e}")
        return 1


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
