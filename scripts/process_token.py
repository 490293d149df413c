"""Run the media pipeline for a single token from the command line."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict, dataclass

from src.tokenmedia.config import load_config
from src.tokenmedia.dependencies import build_services
from src.tokenmedia.domain.tokens import Chain, TokenIdentifier
from src.tokenmedia.logging import configure_logging
from src.tokenmedia.pipeline.pipeline_errors import PipelineError
from src.tokenmedia.pipeline.pipeline_models import JobOptions, ProcessingCause


@dataclass(slots=True)
class ProcessSummary:
    token: str
    run_id: str
    media_type: str
    media_url: str
    error: str | None


async def process(token: TokenIdentifier, *, refresh: bool) -> ProcessSummary:
    services = build_services(load_config())
    try:
        result = await services.processor.process_token(
            token,
            token.contract,
            ProcessingCause.MANUAL,
            JobOptions(refresh_metadata=refresh),
        )
    finally:
        await services.aclose()
    return ProcessSummary(
        token=token.key(),
        run_id=result.run_id,
        media_type=result.media.media_type.value,
        media_url=result.media.media_url,
        error=str(result.error) if result.error else None,
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Process media for one token.")
    parser.add_argument("contract", help="Contract address.")
    parser.add_argument("token_id", help="Token id; hex unless --decimal is given.")
    parser.add_argument("--chain", default="ethereum", help="Chain name or number.")
    parser.add_argument("--decimal", action="store_true", help="Treat token_id as a decimal number.")
    parser.add_argument("--refresh", action="store_true", help="Fetch metadata from the provider again.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    configure_logging()
    try:
        chain = Chain.parse(args.chain)
        if args.decimal:
            token = TokenIdentifier.from_decimal(chain, args.contract, args.token_id)
        else:
            token = TokenIdentifier(chain, args.contract, args.token_id)
        summary = asyncio.run(process(token, refresh=args.refresh))
    except (ValueError, PipelineError) as exc:
        print(f"processing failed: {exc}", file=sys.stderr)
        return 2
    print(json.dumps(asdict(summary), indent=2))
    return 0 if summary.error is None else 1


if __name__ == "__main__":
    raise SystemExit(main())
