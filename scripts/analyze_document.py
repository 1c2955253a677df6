"""Analyze a text file (or stdin) and print the result as JSON."""

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.analysis.models import PipelineStage
from src.analysis.orchestrator import analyze_document
from src.api.models import AnalysisResponse
from src.config import get_settings
from src.pipeline_config import PipelineConfig


def read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def build_config(args: argparse.Namespace) -> PipelineConfig:
    config = PipelineConfig.from_settings(get_settings())
    overrides = {}
    if args.model:
        overrides["model"] = args.model
    if args.chunk_size:
        overrides["chunk_size"] = args.chunk_size
    if args.concurrency:
        overrides["extraction_concurrency"] = args.concurrency
    return dataclasses.replace(config, **overrides)


def report_progress(stage: PipelineStage, detail: str) -> None:
    print(f"[{stage.value}] {detail}".rstrip(), file=sys.stderr)


async def main(args: argparse.Namespace) -> int:
    text = read_input(args.path)
    config = build_config(args)
    result = await analyze_document(
        text,
        config,
        on_progress=report_progress if args.verbose else None,
    )
    file_name = None if args.path == "-" else Path(args.path).name
    response = AnalysisResponse.from_result(result, file_name=file_name)
    print(json.dumps(response.model_dump(by_alias=True, mode="json"), indent=2))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("path", help="UTF-8 text file to analyze, or - for stdin")
    parser.add_argument("--model", default=None, help="Override the LLM model")
    parser.add_argument("--chunk-size", type=int, default=None)
    parser.add_argument("--concurrency", type=int, default=None)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(main(args)))
