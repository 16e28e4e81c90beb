# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: Typer command-line entry point. Collects prompt, output path and options, loads configuration,
#          runs the generation pipeline and maps pipeline errors onto distinct process exit codes.
# SRP and DRY check: Pass. Thin wrapper; all generation behaviour lives in imagecreator.generation.
"""Command-line interface: ``imagecreator generate "a red fox in snow" -o fox``."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Any, Dict, Optional

import typer

from imagecreator.generation.errors import ExitCode, ImageGenerationError
from imagecreator.generation.pipeline import ImageGenerationPipeline
from imagecreator.utils.imagecreator_config import ConfigEnum, ImageCreatorConfig
from imagecreator.utils.logging_setup import configure_logging

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="imagecreator",
    help="Generate images from text prompts with the Google Gemini image API.",
    add_completion=False,
)


@app.callback()
def main() -> None:
    """Generate images from text prompts with the Google Gemini image API."""


def _build_pipeline(config: ImageCreatorConfig) -> ImageGenerationPipeline:
    return ImageGenerationPipeline(config)


async def _run(pipeline: ImageGenerationPipeline, **kwargs: Any):
    async with pipeline:
        return await pipeline.generate(**kwargs)


@app.command()
def generate(
    prompt: Annotated[str, typer.Argument(help="Text prompt describing the image")],
    output: Annotated[
        Path, typer.Option("--output", "-o", help="Output file (extension optional) or existing directory")
    ] = Path("generated_image"),
    aspect_ratio: Annotated[
        Optional[str], typer.Option("--aspect-ratio", "-a", help="Aspect ratio, e.g. 1:1, 16:9, 9:16")
    ] = None,
    samples: Annotated[
        Optional[int], typer.Option("--samples", "-n", help="Number of candidates to request (1-4)")
    ] = None,
    all_candidates: Annotated[
        bool, typer.Option("--all", help="Write every returned candidate as numbered files")
    ] = False,
    model: Annotated[Optional[str], typer.Option("--model", "-m", help="Gemini model name")] = None,
    api_key: Annotated[
        Optional[str],
        typer.Option(
            "--api-key",
            envvar=ConfigEnum.GEMINI_API_KEY.value,
            help="Gemini API key (defaults to GEMINI_API_KEY)",
            show_default=False,
        ),
    ] = None,
    timeout: Annotated[
        Optional[float], typer.Option("--timeout", help="Per-request timeout in seconds")
    ] = None,
    max_attempts: Annotated[
        Optional[int], typer.Option("--max-attempts", help="Attempts including the first one")
    ] = None,
    deadline: Annotated[
        Optional[float], typer.Option("--deadline", help="Overall deadline in seconds across retries")
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the result as JSON")] = False,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="DEBUG, INFO, WARNING, ERROR")] = None,
) -> None:
    """Generate an image from PROMPT and write it to disk."""
    config = ImageCreatorConfig.from_env()
    configure_logging(log_level or config.log_level)

    if timeout is not None:
        config.timeout_seconds = timeout
    if max_attempts is not None:
        config.max_attempts = max_attempts
    if deadline is not None:
        config.deadline_seconds = deadline

    parameters: Dict[str, Any] = {}
    if aspect_ratio is not None:
        parameters["aspect_ratio"] = aspect_ratio
    if samples is not None:
        parameters["sample_count"] = samples

    try:
        if api_key:
            credential = api_key
        else:
            credential = config.require_api_key()
        pipeline = _build_pipeline(config)
        result = asyncio.run(_run(
            pipeline,
            prompt=prompt,
            output_path=output,
            credential=credential,
            parameters=parameters,
            model=model,
            all_candidates=all_candidates,
        ))
    except ImageGenerationError as exc:
        typer.echo(f"Error [{exc.kind}]: {exc.message}", err=True)
        raise typer.Exit(int(exc.exit_code)) from exc
    except ValueError as exc:
        # RetryPolicy rejects nonsensical overrides such as --max-attempts 0.
        typer.echo(f"Error [invalid_option]: {exc}", err=True)
        raise typer.Exit(int(ExitCode.INVALID_REQUEST)) from exc

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return
    for path in result.paths:
        typer.echo(str(path))


@app.command("show-config")
def show_config() -> None:
    """Print the resolved configuration (the API key is only reported as set/unset)."""
    config = ImageCreatorConfig.from_env()
    summary = {
        "api_key": "set" if config.api_key else "unset",
        "api_base_url": config.api_base_url,
        "default_model": config.default_model,
        "allowed_models": config.allowed_models,
        "max_prompt_length": config.max_prompt_length,
        "timeout_seconds": config.timeout_seconds,
        "max_attempts": config.max_attempts,
        "base_delay_seconds": config.base_delay_seconds,
        "deadline_seconds": config.deadline_seconds,
        "log_level": config.log_level,
    }
    typer.echo(json.dumps(summary, indent=2))


if __name__ == "__main__":
    app()
