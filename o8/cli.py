#!/usr/bin/env python3
"""
O8 Command Line Interface

Non-interactive tools for fingerprinting audio and for validating,
publishing and verifying declarations.

Usage:
    o8 fingerprint track.wav --json
    o8 validate o8-declaration.json
    o8 publish o8-declaration.json --pin
    o8 verify o8-bafkrei... track.wav --provenance --signatures
    o8 view o8-bafkrei...
    o8 info

Content store endpoints are read from the environment (see ``o8.config``);
a ``.env`` file in the working directory is honoured.
"""

import asyncio
from datetime import timezone
import json
from pathlib import Path

import click
from dotenv import load_dotenv

from o8 import __version__
from o8.config import StoreConfig
from o8.core.errors import O8Error, ValidationError
from o8.core.fingerprint import fingerprint_audio
from o8.core.ids import extract_content_address
from o8.core.scoring import calculate_average_ai, transparency_score
from o8.core.store import IPFSClient, publish_declaration
from o8.core.validator import parse_declaration, validate_declaration
from o8.core.verifier import format_verification_result, verify_declaration
from o8.log import configure_logging
from o8.utils.helpers import format_duration, format_file_size, parse_timestamp


def _run_with_store(ctx: click.Context, operation):
    """Run ``operation(store)`` on the configured content store."""

    async def runner():
        store = ctx.obj.get("store")
        if store is not None:
            return await operation(store)
        async with IPFSClient(StoreConfig.from_env()) as client:
            return await operation(client)

    try:
        return asyncio.run(runner())
    except (O8Error, ValueError) as e:
        raise click.ClickException(str(e)) from e


def _load_json(path: str):
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except ValueError as e:
        raise click.ClickException(f"{path} is not valid JSON: {e}") from e


@click.group()
@click.version_option(version=__version__)
@click.option('--log-level', default='WARNING', show_default=True,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Minimum log level')
@click.option('--log-json', is_flag=True, help='Emit logs as JSON lines')
@click.pass_context
def main(ctx, log_level, log_json):
    """O8: creative provenance declarations for AI-native music"""
    load_dotenv()
    configure_logging(log_level, json=log_json)
    ctx.ensure_object(dict)


@main.command()
@click.argument('audio_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--json-output', '--json', '-j', is_flag=True, help='Output as JSON')
@click.option('--upload', is_flag=True, help='Also publish the audio to the content store')
@click.pass_context
def fingerprint(ctx, audio_file, json_output, upload):
    """Generate the fingerprint of an audio file."""
    try:
        result = asyncio.run(fingerprint_audio(audio_file))
    except O8Error as e:
        raise click.ClickException(str(e)) from e

    data = result.to_dict()
    if upload:
        data["cid"] = _run_with_store(ctx, lambda store: store.publish_file(audio_file))

    if json_output:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(click.style("Audio Fingerprint", bold=True))
    click.echo("-" * 50)
    click.echo(f"SHA-256: {result.sha256}")
    click.echo(f"Duration: {format_duration(result.duration_ms)} ({result.duration_ms}ms)")
    click.echo(f"Format: {result.format}")
    click.echo(f"Size: {format_file_size(Path(audio_file).stat().st_size)}")
    if result.sample_rate:
        click.echo(f"Sample Rate: {result.sample_rate}Hz")
    if result.bit_depth:
        click.echo(f"Bit Depth: {result.bit_depth}")
    if upload:
        click.echo(f"CID: {data['cid']}")


@main.command()
@click.argument('input_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--json-output', '--json', '-j', is_flag=True, help='Output as JSON')
@click.pass_context
def validate(ctx, input_file, json_output):
    """Validate a declaration JSON file."""
    result = validate_declaration(_load_json(input_file))
    score = transparency_score(result.declaration) if result.valid else None

    if json_output:
        output = result.to_dict()
        output["transparency_score"] = score
        click.echo(json.dumps(output, indent=2))
    elif result.valid:
        click.echo(click.style("Valid declaration.", fg='green', bold=True))
        click.echo(f"Transparency Score: {score}/100")
    else:
        click.echo(click.style("Invalid declaration:", fg='red', bold=True))
        for error in result.errors:
            click.echo(f"  - {error}")

    ctx.exit(0 if result.valid else 1)


@main.command()
@click.argument('input_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--pin', is_flag=True, help='Pin the published declaration')
@click.pass_context
def publish(ctx, input_file, pin):
    """Publish a declaration and write back its published ID."""
    try:
        declaration = parse_declaration(_load_json(input_file))
    except ValidationError as e:
        click.echo(click.style("Invalid declaration:", fg='red', bold=True))
        for error in e.errors:
            click.echo(f"  - {error}")
        ctx.exit(1)

    result = _run_with_store(ctx, lambda store: publish_declaration(declaration, store, pin=pin))

    Path(input_file).write_text(result.declaration.to_json(), encoding='utf-8')

    click.echo(click.style("Published successfully.", fg='green', bold=True))
    click.echo(f"CID: {result.cid}")
    click.echo(f"Declaration ID: {result.declaration_id}")
    click.echo(f"Gateway URL: {result.gateway_url}")
    if result.pin is not None:
        if result.pin.pinned:
            click.echo("Pinned: yes")
        else:
            click.echo(click.style(f"Pinned: no ({result.pin.error})", fg='yellow'))


@main.command()
@click.argument('reference')
@click.argument('audio_file', required=False, type=click.Path(dir_okay=False))
@click.option('--signatures', '-s', is_flag=True, help='Check signatures of parties with wallets')
@click.option('--provenance', '-p', is_flag=True, help='Check that referenced sources exist')
@click.option('--json-output', '--json', '-j', is_flag=True, help='Output as JSON')
@click.pass_context
def verify(ctx, reference, audio_file, signatures, provenance, json_output):
    """Verify a declaration by CID, declaration ID or gateway URL."""
    report = _run_with_store(
        ctx,
        lambda store: verify_declaration(
            reference,
            store,
            audio_file=audio_file,
            check_signatures=signatures,
            check_provenance=provenance,
        ),
    )

    if json_output:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        if report.valid:
            click.echo(click.style("VERIFIED", fg='green', bold=True))
        else:
            click.echo(click.style("VERIFICATION FAILED", fg='red', bold=True))
        click.echo("")
        click.echo(format_verification_result(report))

    ctx.exit(0 if report.valid else 1)


@main.command()
@click.argument('reference')
@click.option('--json-output', '--json', '-j', is_flag=True, help='Output as JSON')
@click.pass_context
def view(ctx, reference, json_output):
    """Fetch and display a declaration."""
    try:
        cid = extract_content_address(reference)
    except O8Error as e:
        raise click.ClickException(str(e)) from e

    declaration = _run_with_store(ctx, lambda store: store.fetch(cid))

    if json_output:
        click.echo(declaration.to_json())
        return

    identity = declaration.identity
    stack = declaration.creative_stack
    intelligence = declaration.production_intelligence
    fp = declaration.audio_fingerprint

    click.echo(click.style("O8 Declaration", bold=True))
    click.echo("-" * 50)
    click.echo(f"Declaration ID: {declaration.declaration_id}")
    click.echo(f"Created: {parse_timestamp(declaration.created_at).astimezone(timezone.utc):%Y-%m-%d %H:%M} UTC")
    click.echo(f"Artist: {identity.primary_artist.name}")
    if identity.primary_artist.wallet:
        click.echo(f"Wallet: {identity.primary_artist.wallet}")

    if identity.collaborators:
        click.echo("\nCollaborators:")
        for collaborator in identity.collaborators:
            split = f" {collaborator.split * 100:g}%" if collaborator.split is not None else ""
            click.echo(f"  - {collaborator.name} ({collaborator.role}){split}")

    click.echo("\nCreative Stack:")
    if stack.daws:
        click.echo(f"  DAWs: {', '.join(stack.daws)}")
    if stack.plugins:
        click.echo(f"  Plugins: {', '.join(stack.plugins)}")
    for model in stack.ai_models:
        click.echo(f"  AI Model: {model.name} ({model.provider}): {model.usage}")

    click.echo("\nAI Contribution:")
    contribution = intelligence.ai_contribution.to_dict()
    for phase, value in contribution.items():
        click.echo(f"  {phase.capitalize()}: {value * 100:.0f}%")
    click.echo(f"  Average: {calculate_average_ai(intelligence.ai_contribution) * 100:.0f}%")

    click.echo(f"\nTransparency Score: {transparency_score(declaration)}/100")

    click.echo("\nMethodology:")
    click.echo(intelligence.methodology)

    click.echo("\nAudio Fingerprint:")
    click.echo(f"  SHA-256: {fp.sha256}")
    click.echo(f"  Duration: {format_duration(fp.duration_ms)}")
    click.echo(f"  Format: {fp.format}")

    click.echo(f"\nCID: {cid}")


@main.command()
def info():
    """Show O8 version and configuration."""
    try:
        config = StoreConfig.from_env()
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"""
O8: Creative Provenance Declarations
====================================

Version: {__version__}

Content store:
  API:      {config.api_url}
  Gateway:  {config.gateway_url}
  Timeout:  {config.timeout:g}s
  Attempts: {config.retries}

Declarations record how audio was made (tools, AI contribution,
collaborators, sources) and are addressed by the hash of their content.
""")


if __name__ == "__main__":
    main()
