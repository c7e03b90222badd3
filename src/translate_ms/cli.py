"""
Command-Line Interface for translate-ms.

Runs the gateway in-process (no HTTP server needed) or starts the server.

Usage Examples:
    # Translate one text
    translate-ms translate "안녕하세요" --to Vietnamese

    # Translate a file (1 line = 1 item), JSON output
    translate-ms translate --file inputs.txt --to Korean --json

    # Synthesize speech to an MP3 file
    translate-ms speak "Xin chào" --language Vietnamese --out hello.mp3

    # Start the HTTP server
    translate-ms serve --host 0.0.0.0 --port 8000

Environment Variables:
    TRANSLATE_MS_SETTINGS: Settings file (default config/settings.yaml)
    OPENAI_API_KEY: System OpenAI key
    GOOGLE_TTS_API_KEY: System Google Cloud TTS key
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from translate_ms.core.config import Settings, load_settings
from translate_ms.core.errors import GatewayError
from translate_ms.core.logging import configure_logging, get_logger, info, set_request_id, set_user
from translate_ms.services.gateway import Gateway
from translate_ms.services.speech_service import SpeakRequest
from translate_ms.services.translation_service import TranslateRequest


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="translate-ms CLI")
    parser.add_argument("--settings", help="Settings YAML (overrides TRANSLATE_MS_SETTINGS)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_tr = sub.add_parser("translate", help="Translate text")
    p_tr.add_argument("text", nargs="?", help="Text to translate")
    p_tr.add_argument("--file", help="Batch input file (1 line = 1 item)")
    p_tr.add_argument("--to", dest="target_lang", required=True, help="Target language")
    p_tr.add_argument("--quality", type=int, help="Quality tier (1-5)")
    p_tr.add_argument("--no-pronunciation", action="store_true", help="Skip Hangul pronunciation")
    p_tr.add_argument("--context", help="Contextual prompt")
    p_tr.add_argument("--user", help="User id for per-user API keys")
    p_tr.add_argument("--json", action="store_true", help="Print JSON")

    p_sp = sub.add_parser("speak", help="Synthesize speech to an MP3 file")
    p_sp.add_argument("text", help="Text to speak")
    p_sp.add_argument("--out", default="out.mp3", help="Output path (default out.mp3)")
    p_sp.add_argument("--language", help="Language name or code")
    p_sp.add_argument("--voice", help="Provider voice name")
    p_sp.add_argument("--mode", choices=["auto", "primary", "secondary"], help="Provider order")
    p_sp.add_argument("--user", help="User id for per-user API keys")
    p_sp.add_argument("--json", action="store_true", help="Print JSON")

    p_sv = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    p_sv.add_argument("--host", default="127.0.0.1")
    p_sv.add_argument("--port", type=int, default=8000)
    p_sv.add_argument("--reload", action="store_true")

    return parser.parse_args(argv)


def _load_settings(path: Optional[str]) -> Settings:
    path = path or os.getenv("TRANSLATE_MS_SETTINGS", "config/settings.yaml")
    if not Path(path).exists():
        return Settings(raw={})
    return load_settings(path)


def _load_texts(args: argparse.Namespace) -> List[str]:
    """
    Texts from the positional argument or --file.

    Raises:
        SystemExit: If no input is provided or both are given.
    """
    if args.file:
        if args.text:
            raise SystemExit("Use --file without positional text.")
        lines = Path(args.file).read_text(encoding="utf-8").splitlines()
        items = [line.strip() for line in lines if line.strip()]
        if not items:
            raise SystemExit("Input file is empty.")
        return items

    if not args.text:
        raise SystemExit("Provide text or --file.")
    return [args.text]


async def _translate(gateway: Gateway, args: argparse.Namespace) -> List[Dict[str, Any]]:
    results = []
    for text in _load_texts(args):
        result = await gateway.translation.translate(TranslateRequest(
            text=text,
            target_lang=args.target_lang,
            quality=args.quality,
            pronunciation=not args.no_pronunciation,
            context_prompt=args.context,
            user_id=args.user,
        ))
        results.append(result.to_dict())
    return results


async def _speak(gateway: Gateway, args: argparse.Namespace) -> Dict[str, Any]:
    result = await gateway.speech.speak(SpeakRequest(
        text=args.text,
        language=args.language,
        voice=args.voice,
        mode=args.mode,
        user_id=args.user,
    ))
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(result.audio)
    return {"out": str(out_path), "bytes": result.byte_length, "provider": result.provider}


async def _run(settings: Settings, args: argparse.Namespace) -> Dict[str, Any]:
    gateway = Gateway.from_settings(settings)
    try:
        if args.command == "translate":
            return {"ok": True, "items": await _translate(gateway, args)}
        return {"ok": True, **await _speak(gateway, args)}
    finally:
        await gateway.aclose()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for gateway errors).
    """
    args = _parse_args(argv)

    if args.settings:
        os.environ["TRANSLATE_MS_SETTINGS"] = args.settings

    configure_logging()
    log = get_logger("translate-ms.cli")

    if args.command == "serve":
        import uvicorn
        info(log, "serve", host=args.host, port=args.port)
        uvicorn.run("translate_ms.main:app", host=args.host, port=args.port, reload=args.reload)
        return 0

    set_request_id(str(uuid4())[:12])
    set_user(getattr(args, "user", None))
    settings = _load_settings(args.settings)

    try:
        payload = asyncio.run(_run(settings, args))
    except GatewayError as e:
        print(json.dumps(e.to_dict(), ensure_ascii=False))
        return 1

    if args.json:
        print(json.dumps(payload, ensure_ascii=False))
    elif args.command == "translate":
        for item in payload["items"]:
            print(item["translation"])
            if item["pronunciation"]:
                print(f"  [{item['pronunciation']}]")
    else:
        print(f"{payload['out']} ({payload['bytes']} bytes, {payload['provider']})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
