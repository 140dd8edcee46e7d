"""Unified command-line interface for splitz.

Usage:
    splitz serve [--host --port]
    splitz list
    splitz show <id>
    splitz extract <images...> --charges <image> [--id <id>]
    splitz review <id> <edits.json>
    splitz classify <id> [--keep-reviewed]
    splitz split <id> <request.json>
    splitz finalize <id> <request.json>
    splitz reopen <id>
    splitz export-csv <id> [request.json] [-o file]
    splitz import-csv <id> <file> [--save]
"""
