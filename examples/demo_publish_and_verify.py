#!/usr/bin/env python3
"""
O8 Demo: Build, Publish and Verify a Declaration

Walks through the full life of a declaration against an in-memory content
store, so no IPFS node is needed:

    1. fingerprint an audio file
    2. build a validated declaration
    3. publish it (pending ID stored, published ID returned)
    4. verify it by published ID, with the audio file, signatures and
       provenance checks
    5. tamper with the audio and verify again

Usage:
    python examples/demo_publish_and_verify.py track.wav

    # Keep the published declaration
    python examples/demo_publish_and_verify.py track.wav -o o8-declaration.json
"""

import argparse
import asyncio
import shutil
import sys
import tempfile
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from o8.core.builder import DeclarationBuilder
from o8.core.fingerprint import fingerprint_audio
from o8.core.scoring import transparency_score
from o8.core.store import MemoryStore, publish_declaration
from o8.core.verifier import format_verification_result, verify_declaration
from o8.log import configure_logging


def print_header(text: str):
    print()
    print("=" * 60)
    print(f"  {text}")
    print("=" * 60)


def print_section(text: str):
    print()
    print(f"--- {text} " + "-" * (55 - len(text)))


async def run_demo(audio_file: Path, output: str = None):
    store = MemoryStore()

    print_header("O8 Declaration Lifecycle")

    print_section("Step 1: Fingerprint")
    fingerprint = await fingerprint_audio(audio_file)
    print(f"  File:     {audio_file}")
    print(f"  SHA-256:  {fingerprint.sha256}")
    print(f"  Duration: {fingerprint.duration_ms}ms ({fingerprint.format})")

    # Source audio the declaration will reference
    root_cid = await store.publish_file(audio_file)

    print_section("Step 2: Build")
    declaration = (
        DeclarationBuilder()
        .set_artist("Producer X", wallet="0x" + "ab" * 20, signature="0xdemo-signature")
        .add_collaborator("Vocalist", "vocals", split=0.3)
        .add_daw("Ableton Live 12")
        .add_plugin("Serum")
        .add_ai_model("Suno v3", "Suno", "melody generation")
        .set_ai_contribution(composition=0.4, arrangement=0.2)
        .set_methodology("AI-generated melody sketches, human arrangement, mixing and mastering")
        .set_root_cid(root_cid)
        .set_audio_fingerprint(fingerprint)
        .build()
    )
    print(f"  Declaration ID:     {declaration.declaration_id}")
    print(f"  Transparency score: {transparency_score(declaration)}/100")

    print_section("Step 3: Publish")
    published = await publish_declaration(declaration, store, pin=True)
    print(f"  CID:            {published.cid}")
    print(f"  Declaration ID: {published.declaration_id}")
    print(f"  Gateway URL:    {published.gateway_url}")
    print(f"  Pinned:         {published.pin.pinned}")

    if output:
        Path(output).write_text(published.declaration.to_json(), encoding="utf-8")
        print(f"  Written to:     {output}")

    print_section("Step 4: Verify")
    report = await verify_declaration(
        published.declaration_id,
        store,
        audio_file=audio_file,
        check_signatures=True,
        check_provenance=True,
    )
    print()
    print(format_verification_result(report))

    print_section("Step 5: Verify Tampered Audio")
    with tempfile.TemporaryDirectory() as tmp:
        tampered = Path(tmp) / audio_file.name
        shutil.copyfile(audio_file, tampered)
        with open(tampered, "ab") as f:
            f.write(b"\x00")

        report = await verify_declaration(published.cid, store, audio_file=tampered)
    print()
    print(format_verification_result(report))

    return report


def main():
    parser = argparse.ArgumentParser(description="O8 declaration lifecycle demo")
    parser.add_argument("audio", help="Audio file to declare (wav, flac, mp3, ...)")
    parser.add_argument("-o", "--output", help="Write the published declaration to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show library log events")
    args = parser.parse_args()

    configure_logging("DEBUG" if args.verbose else "WARNING")

    audio_file = Path(args.audio)
    if not audio_file.is_file():
        print(f"Error: {audio_file} not found", file=sys.stderr)
        sys.exit(1)

    asyncio.run(run_demo(audio_file, args.output))


if __name__ == "__main__":
    main()
