"""Command line interface for ergon."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

import typer
from dotenv import load_dotenv

from . import __version__
from .audio import MIME_TYPES as AUDIO_MIME_TYPES
from .catalog import DEFAULT_MAX_WORKERS, CatalogEntry, format_markdown_entry, process_images, render_catalog
from .config import AppConfig, get_api_key, load_config, resolve_option, save_config, validate_api_key_format
from .constants import (
    DEFAULT_IMAGE_OPTIONS,
    IMAGE_FORMATS,
    LANGUAGE_DESCRIPTIONS,
    OUTPUT_FORMATS,
    is_nano_banana,
)
from .errors import ErgonError, ValidationError, require_choice
from .files import load_context_file, read_image_file, save_file_with_unique_name_if_exists
from .gemini_client import GeminiClient
from .imagen import ImageOptions, ImagenClient, convert_image
from .logs import LogDestination, LoggerRegistry, parse_log_level, read_log_entries, render_entry
from .nano_banana import DEFAULT_ENGINE as DEFAULT_EDIT_ENGINE
from .nano_banana import NanoBananaClient
from .output import error_code, error_output, print_json, success_output
from .presets import ImagePreset, delete_preset, get_preset, list_all_presets, save_preset
from .tts import TTSClient, TTSOptions
from .utils import resolve_image_output_path, resolve_media_output_path, setup_logging
from .video import VideoClient, VideoOptions

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(help="Generate captions, images, videos and narration with Google generative AI.")
image_app = typer.Typer(help="Generate, edit and explain images.")
narration_app = typer.Typer(help="Generate spoken narration.")
preset_app = typer.Typer(help="Manage image generation presets.")
app.add_typer(image_app, name="image")
app.add_typer(narration_app, name="narration")
app.add_typer(preset_app, name="preset")


def _version(value: bool) -> None:
    if value:
        typer.echo(f"ergon {__version__}")
        raise typer.Exit()


@app.callback()
def _init(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    version: bool = typer.Option(False, "--version", callback=_version, is_eager=True, help="Show version and exit."),
) -> None:
    """Initialize logging for all commands."""

    level = logging.DEBUG if verbose else logging.INFO
    setup_logging(level=level)
    registry = LoggerRegistry(LogDestination.BOTH, level)
    ctx.call_on_close(registry.close)
    ctx.obj = {"loggers": registry}


def _component_logger(ctx: typer.Context, name: str, debug: bool = False) -> logging.Logger:
    registry: LoggerRegistry = ctx.obj["loggers"]
    if debug:
        registry.configure(min_level=logging.DEBUG)
    return registry.get(name)


def _fail(command: str, exc: BaseException, json_output: bool = False, logger: Optional[logging.Logger] = None) -> NoReturn:
    if logger is not None:
        logger.error("%s failed", command, extra={"data": {"error": str(exc)}})
    if json_output:
        print_json(error_output(command, str(exc), error_code(exc)))
    else:
        typer.secho(f"Error: {exc}", err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _print_dry_run(command: str, info: Dict[str, Any], json_output: bool) -> None:
    if json_output:
        print_json(success_output(command, {"dryRun": True, **info}))
        return
    typer.echo(f"[DRY-RUN] {command}")
    for key, value in info.items():
        typer.echo(f"  {key}: {value}")
    typer.echo("No API calls were made. Run again without --dry-run to execute.")


def _print_saved(command: str, result: Dict[str, Any], json_output: bool) -> None:
    if json_output:
        print_json(success_output(command, result))
    else:
        typer.secho(f"Saved to {result['path']}", fg=typer.colors.GREEN)


def _shorten(text: str, limit: int = 100) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _settings() -> AppConfig:
    return load_config() or AppConfig()


def _resolve_language(lang: Optional[str], settings: Optional[AppConfig] = None) -> str:
    settings = settings or _settings()
    return resolve_option("lang", [{"lang": lang}], settings.get("default_language"))


# ---------------------------------------------------------------------------
# image
# ---------------------------------------------------------------------------


def _resolve_image_options(
    explicit: Dict[str, Any],
    preset: Optional[ImagePreset],
    settings: AppConfig,
) -> ImageOptions:
    """Merge option sources: explicit flags, preset, settings, built-in defaults."""

    stored = {
        "engine": settings.default_image_engine,
        "format": settings.default_image_format,
        "aspect_ratio": settings.default_aspect_ratio,
    }
    sources = [explicit, preset.as_options() if preset else {}, stored]
    values = {key: resolve_option(key, sources, default) for key, default in DEFAULT_IMAGE_OPTIONS.items()}
    return ImageOptions(**values)


@image_app.command("gen")
def image_gen(
    ctx: typer.Context,
    theme: str = typer.Argument(..., help="Theme of the image."),
    context: Optional[str] = typer.Option(None, "--context", "-c", help="Context text or a .md/.txt file."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file or directory."),
    size: Optional[str] = typer.Option(None, "--size", "-s", help="Size preset (tiny, small, hd, fullhd, large, 2k, 4k)."),
    aspect_ratio: Optional[str] = typer.Option(None, "--aspect-ratio", "-a", help="Aspect ratio (16:9, 4:3, 1:1, 9:16, 3:4)."),
    image_type: Optional[str] = typer.Option(None, "--type", "-t", help="Image style type."),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help="Image format (jpg, jpeg, png, webp)."),
    quality: Optional[int] = typer.Option(None, "--quality", "-q", help="Image quality (1-100)."),
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help="imagen4, imagen4-fast, imagen4-ultra, nano-banana or nano-banana-pro."),
    preset_name: Optional[str] = typer.Option(None, "--preset", "-p", help="Preset name (see `ergon preset list`)."),
    debug: bool = typer.Option(False, "--debug", "-d", help="Debug logging; also prints the generated prompt."),
    json_output: bool = typer.Option(False, "--json", help="Print a JSON result."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the resolved settings without calling the API."),
) -> None:
    """Generate an image from a theme (Imagen 4 or Nano Banana)."""

    command = "image gen"
    logger = _component_logger(ctx, "image-gen", debug)

    try:
        preset = None
        if preset_name:
            preset = get_preset(preset_name)
            if preset is None:
                raise ValidationError(f"Preset '{preset_name}' not found. Run `ergon preset list` to see available presets.")

        explicit = {
            "engine": engine,
            "size": size,
            "aspect_ratio": aspect_ratio,
            "format": fmt,
            "quality": quality,
            "type": image_type,
        }
        options = _resolve_image_options(explicit, preset, _settings())
        options.validate()
        context_text = load_context_file(context)

        if dry_run:
            _print_dry_run(
                command,
                {
                    "theme": _shorten(theme),
                    "engine": options.engine,
                    "size": options.size,
                    "aspectRatio": options.aspect_ratio,
                    "type": options.type,
                    "format": options.format,
                    "quality": options.quality,
                    "preset": preset_name,
                    "output": output or f"(auto).{options.format}",
                },
                json_output,
            )
            return

        api_key = get_api_key()
        gemini = GeminiClient(api_key)
        file_name = gemini.generate_file_name(theme)
        output_path, out_format = resolve_image_output_path(output, options.format, file_name, IMAGE_FORMATS)

        logger.info("Generating image", extra={"data": {"theme": theme, "engine": options.engine}})
        if is_nano_banana(options.engine):
            prompt = f"{theme}\n\n{context_text}" if context_text else theme
            generated = NanoBananaClient(api_key).generate_image(prompt, engine=options.engine)
            data = convert_image(generated.data, out_format, quality=options.quality)
        else:
            prompt = gemini.generate_prompt(theme, context_text, image_type=options.type)
            if debug and not json_output:
                typer.echo(f"Prompt: {prompt}")
            options.format = out_format
            data = ImagenClient(api_key).generate_image(prompt, options)

        saved = save_file_with_unique_name_if_exists(output_path, data)
        logger.info("Image saved", extra={"data": {"path": saved}})
    except (ErgonError, OSError) as exc:
        _fail(command, exc, json_output, logger)

    _print_saved(
        command,
        {"path": saved, "engine": options.engine, "format": out_format, "prompt": prompt},
        json_output,
    )


@image_app.command("edit")
def image_edit(
    ctx: typer.Context,
    input_path: str = typer.Argument(..., help="Image to edit."),
    instruction: str = typer.Argument(..., help="Edit instruction, e.g. 'make the sky blue'."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file or directory."),
    engine: str = typer.Option(DEFAULT_EDIT_ENGINE, "--engine", "-e", help="nano-banana or nano-banana-pro."),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help="Output format (defaults to the input's)."),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging."),
    json_output: bool = typer.Option(False, "--json", help="Print a JSON result."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the resolved settings without calling the API."),
) -> None:
    """Edit an existing image with Nano Banana."""

    command = "image edit"
    logger = _component_logger(ctx, "image-edit", debug)

    try:
        source = Path(input_path)
        out_format = fmt or source.suffix.lower().lstrip(".")
        if fmt is None and out_format not in IMAGE_FORMATS:
            out_format = "png"
        require_choice("format", out_format, IMAGE_FORMATS)

        if dry_run:
            _print_dry_run(
                command,
                {
                    "input": input_path,
                    "instruction": _shorten(instruction),
                    "engine": engine,
                    "format": out_format,
                    "output": output or f"{source.stem}-edited.{out_format}",
                },
                json_output,
            )
            return

        output_path, out_format = resolve_image_output_path(output, out_format, f"{source.stem}-edited", IMAGE_FORMATS)
        logger.info("Editing image", extra={"data": {"input": input_path, "engine": engine}})
        edited = NanoBananaClient(get_api_key()).edit_image(source, instruction, engine=engine)
        saved = save_file_with_unique_name_if_exists(output_path, convert_image(edited.data, out_format))
        logger.info("Edited image saved", extra={"data": {"path": saved}})
    except (ErgonError, OSError) as exc:
        _fail(command, exc, json_output, logger)

    _print_saved(command, {"path": saved, "input": input_path, "engine": engine, "format": out_format}, json_output)


def _describe_command(
    command: str,
    logger: logging.Logger,
    image_path: str,
    lang: Optional[str],
    fmt: str,
    context: Optional[str],
    output: Optional[str],
    explain: bool,
) -> None:
    """Shared body of ``caption`` and ``image explain``."""

    key = "explanation" if explain else "caption"
    try:
        lang = _resolve_language(lang)
        require_choice("language", lang, LANGUAGE_DESCRIPTIONS)
        require_choice("format", fmt, OUTPUT_FORMATS)
        image = read_image_file(image_path)
        context_text = load_context_file(context)

        client = GeminiClient(get_api_key())
        describe = client.generate_explanation if explain else client.generate_caption
        text = describe(image, lang=lang, context=context_text)
        logger.info("Described image", extra={"data": {"path": image_path, "kind": key}})

        if fmt == "json":
            rendered = json.dumps({"file": image_path, key: text}, indent=2, ensure_ascii=False)
        elif explain:
            rendered = f"# {image_path}\n\n{text}\n"
        else:
            rendered = format_markdown_entry(CatalogEntry(file=image_path, caption=text), output)

        saved = None
        if output:
            saved = save_file_with_unique_name_if_exists(output, rendered.encode("utf-8"))
            logger.info("Result saved", extra={"data": {"path": saved}})
    except (ErgonError, OSError) as exc:
        _fail(command, exc, logger=logger)

    if saved:
        typer.secho(f"Saved to {saved}", fg=typer.colors.GREEN)
    else:
        typer.echo(rendered if fmt == "json" else text)


@image_app.command("explain")
def image_explain(
    ctx: typer.Context,
    image_path: str = typer.Argument(..., help="Image to explain."),
    lang: Optional[str] = typer.Option(None, "--lang", "-l", help="Output language (defaults to the stored setting, then ja)."),
    fmt: str = typer.Option("markdown", "--format", "-f", help="markdown or json."),
    context: Optional[str] = typer.Option(None, "--context", "-c", help="Context text or a .md/.txt file."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the result to this file."),
) -> None:
    """Explain an image in detail."""

    _describe_command("image explain", _component_logger(ctx, "image-explain"), image_path, lang, fmt, context, output, True)


@app.command()
def caption(
    ctx: typer.Context,
    image_path: str = typer.Argument(..., help="Image to caption."),
    lang: Optional[str] = typer.Option(None, "--lang", "-l", help="Caption language (defaults to the stored setting, then ja)."),
    fmt: str = typer.Option("markdown", "--format", "-f", help="markdown or json."),
    context: Optional[str] = typer.Option(None, "--context", "-c", help="Context text or a .md/.txt file."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the result to this file."),
) -> None:
    """Generate a short caption for an image."""

    _describe_command("caption", _component_logger(ctx, "caption"), image_path, lang, fmt, context, output, False)


@app.command()
def catalog(
    ctx: typer.Context,
    directory: str = typer.Argument(..., help="Directory to scan recursively."),
    lang: Optional[str] = typer.Option(None, "--lang", "-l", help="Caption language (defaults to the stored setting, then ja)."),
    fmt: str = typer.Option("markdown", "--format", "-f", help="markdown or json."),
    context: Optional[str] = typer.Option(None, "--context", "-c", help="Context text or a .md/.txt file."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the catalog to this file."),
    jobs: int = typer.Option(DEFAULT_MAX_WORKERS, "--jobs", "-j", min=1, help="Concurrent caption requests."),
) -> None:
    """Caption every image under a directory."""

    logger = _component_logger(ctx, "catalog")
    try:
        lang = _resolve_language(lang)
        require_choice("language", lang, LANGUAGE_DESCRIPTIONS)
        require_choice("format", fmt, OUTPUT_FORMATS)
        if not os.path.isdir(directory):
            raise ValidationError(f"Not a directory: {directory}")
        context_text = load_context_file(context)

        client = GeminiClient(get_api_key())
        entries = process_images(directory, client, lang=lang, context=context_text, max_workers=jobs, logger=logger)
        rendered = render_catalog(entries, fmt, output)

        saved = None
        if output:
            saved = save_file_with_unique_name_if_exists(output, rendered.encode("utf-8"))
            logger.info("Catalog saved", extra={"data": {"path": saved, "images": len(entries)}})
    except (ErgonError, OSError) as exc:
        _fail("catalog", exc, logger=logger)

    if saved:
        typer.secho(f"Saved {len(entries)} captions to {saved}", fg=typer.colors.GREEN)
    else:
        typer.echo(rendered)


# ---------------------------------------------------------------------------
# video / narration
# ---------------------------------------------------------------------------


@app.command()
def video(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="Description of the video."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file or directory."),
    duration: int = typer.Option(8, "--duration", help="Length in seconds (5-8)."),
    resolution: str = typer.Option("1080p", "--resolution", "-r", help="720p or 1080p."),
    aspect_ratio: str = typer.Option("16:9", "--aspect-ratio", "-a", help="16:9 or 9:16."),
    fast: bool = typer.Option(False, "--fast", help="Use Veo 3.1 Fast."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
    json_output: bool = typer.Option(False, "--json", help="Print a JSON result."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the resolved settings without calling the API."),
) -> None:
    """Generate a video with Veo 3.1."""

    command = "video"
    logger = _component_logger(ctx, "video", debug)

    try:
        options = VideoOptions(
            engine="veo-3.1-fast" if fast else "veo-3.1",
            duration=duration,
            resolution=resolution,
            aspect_ratio=aspect_ratio,
        )
        options.validate()

        if dry_run:
            _print_dry_run(
                command,
                {
                    "prompt": _shorten(prompt),
                    "engine": options.engine,
                    "duration": options.duration,
                    "resolution": options.resolution,
                    "aspectRatio": options.aspect_ratio,
                    "output": output or "(auto).mp4",
                },
                json_output,
            )
            return

        api_key = get_api_key()
        file_name = GeminiClient(api_key).generate_file_name(prompt)
        output_path = resolve_media_output_path(output, file_name, "mp4", ("mp4",))

        if not json_output:
            typer.echo(f"Generating video with {options.engine}; this can take a few minutes...")
        logger.info("Generating video", extra={"data": {"engine": options.engine, "duration": options.duration}})
        result = VideoClient(api_key).generate_video(prompt, options)
        saved = save_file_with_unique_name_if_exists(output_path, result.data)
        logger.info("Video saved", extra={"data": {"path": saved}})
    except (ErgonError, OSError) as exc:
        _fail(command, exc, json_output, logger)

    _print_saved(
        command,
        {"path": saved, "engine": options.engine, "duration": options.duration, "mimeType": result.mime_type},
        json_output,
    )


@narration_app.command("gen")
def narration_gen(
    ctx: typer.Context,
    text: str = typer.Argument(..., help="Text to read aloud."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file or directory."),
    voice: Optional[str] = typer.Option(None, "--voice", "-v", help="Aoede, Charon, Fenrir, Kore or Puck."),
    lang: Optional[str] = typer.Option(None, "--lang", "-l", help="Language code (defaults to the stored setting, then ja)."),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help="mp3 or wav."),
    speed: float = typer.Option(1.0, "--speed", help="Speaking rate (0.25-4.0)."),
    model: str = typer.Option("pro", "--model", "-m", help="TTS model: flash or pro."),
    character: Optional[str] = typer.Option(None, "--character", help="Who is speaking, e.g. 'a calm narrator'."),
    direction: Optional[str] = typer.Option(None, "--direction", help="How to speak, e.g. 'whispering'."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
    json_output: bool = typer.Option(False, "--json", help="Print a JSON result."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the resolved settings without calling the API."),
) -> None:
    """Generate narration audio with Gemini TTS."""

    command = "narration gen"
    logger = _component_logger(ctx, "narration-gen", debug)

    try:
        settings = _settings()
        defaults = TTSOptions()
        options = TTSOptions(
            model=model,
            voice=resolve_option("voice", [{"voice": voice}, {"voice": settings.default_audio_voice}], defaults.voice),
            language=_resolve_language(lang, settings),
            format=resolve_option("format", [{"format": fmt}, {"format": settings.default_audio_format}], defaults.format),
            speed=speed,
            character=character,
            direction=direction,
        )
        options.validate()

        if dry_run:
            _print_dry_run(
                command,
                {
                    "text": _shorten(text),
                    "model": options.model,
                    "voice": options.voice,
                    "language": options.language,
                    "format": options.format,
                    "speed": options.speed,
                    "output": output or f"(auto).{options.format}",
                },
                json_output,
            )
            return

        api_key = get_api_key()
        file_name = GeminiClient(api_key).generate_file_name(text)
        output_path = resolve_media_output_path(output, file_name, options.format, AUDIO_MIME_TYPES)

        if not json_output:
            typer.echo(f"Generating speech (voice: {options.voice})...")
        logger.info("Generating speech", extra={"data": {"voice": options.voice, "chars": len(text)}})
        result = TTSClient(api_key).generate_speech(text, options)
        saved = save_file_with_unique_name_if_exists(output_path, result.audio)
        logger.info("Speech saved", extra={"data": {"path": saved}})
    except (ErgonError, OSError) as exc:
        _fail(command, exc, json_output, logger)

    _print_saved(
        command,
        {"path": saved, "voice": options.voice, "format": options.format, "mimeType": result.mime_type},
        json_output,
    )


# ---------------------------------------------------------------------------
# presets / settings / logs
# ---------------------------------------------------------------------------


@preset_app.command("list")
def preset_list(json_output: bool = typer.Option(False, "--json", help="Print JSON.")) -> None:
    """List built-in and user presets."""

    entries = list_all_presets()
    if json_output:
        print_json(success_output("preset list", [entry.to_dict() for entry in entries]))
        return

    for entry in entries:
        settings = ", ".join(f"{key}={value}" for key, value in entry.preset.to_dict().items())
        label = typer.style(entry.name, fg=typer.colors.CYAN if entry.builtin else typer.colors.GREEN)
        typer.echo(f"{label}  {settings}")


@preset_app.command("save")
def preset_save(
    name: str = typer.Argument(..., help="Preset name."),
    aspect_ratio: Optional[str] = typer.Option(None, "--aspect-ratio", "-a"),
    image_type: Optional[str] = typer.Option(None, "--type", "-t"),
    engine: Optional[str] = typer.Option(None, "--engine", "-e"),
    fmt: Optional[str] = typer.Option(None, "--format", "-f"),
    size: Optional[str] = typer.Option(None, "--size", "-s"),
    quality: Optional[int] = typer.Option(None, "--quality", "-q"),
) -> None:
    """Save a user preset (overwrites an existing one)."""

    preset = ImagePreset(
        aspect_ratio=aspect_ratio,
        type=image_type,
        engine=engine,
        format=fmt,
        size=size,
        quality=quality,
    )
    try:
        if preset.is_empty():
            raise ValidationError("Specify at least one option to store in the preset")
        # Validate the stored values against a fully populated option set.
        _resolve_image_options(preset.as_options(), None, AppConfig()).validate()
        save_preset(name, preset)
    except (ErgonError, OSError) as exc:
        _fail("preset save", exc)
    typer.secho(f"Saved preset {name}", fg=typer.colors.GREEN)


@preset_app.command("delete")
def preset_delete(name: str = typer.Argument(..., help="Preset name.")) -> None:
    """Delete a user preset."""

    try:
        if not delete_preset(name):
            raise ValidationError(f"Preset '{name}' not found")
    except (ErgonError, OSError) as exc:
        _fail("preset delete", exc)
    typer.secho(f"Deleted preset {name}", fg=typer.colors.GREEN)


@app.command()
def configure(
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Google API key to store."),
) -> None:
    """Store the Google API key in the settings file."""

    try:
        config = _settings()
        if api_key is None:
            env_key = os.getenv("GOOGLE_API_KEY")
            if env_key and typer.confirm("GOOGLE_API_KEY is set in the environment. Store that value?"):
                api_key = env_key
            elif config.google_api_key and typer.confirm("An API key is already stored. Keep it?"):
                return
            else:
                api_key = typer.prompt("Google API key", hide_input=True)

        problem = validate_api_key_format(api_key.strip())
        if problem:
            raise ValidationError(problem)

        config.google_api_key = api_key.strip()
        path = save_config(config)
    except (ErgonError, OSError) as exc:
        _fail("configure", exc)
    typer.secho(f"Settings saved to {path}", fg=typer.colors.GREEN)


@app.command()
def log(
    component: str = typer.Argument("image-gen", help="Component name, e.g. image-gen, catalog, narration-gen."),
    lines: int = typer.Option(20, "--lines", "-n", min=1, help="Number of entries to show."),
    level: str = typer.Option("info", "--level", "-l", help="Minimum level: debug, info, warn, error."),
) -> None:
    """Show today's log entries for a component."""

    entries = read_log_entries(component, parse_log_level(level), lines)
    if not entries:
        typer.echo(f"No log entries for {component} today.")
        return
    for entry in entries:
        typer.echo(render_entry(entry, component))


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    app()
