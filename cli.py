#!/usr/bin/env python3
"""
epub-audio - Command Line Interface

Usage:
    python cli.py list <book_dir>                  List chapters and audio status
    python cli.py generate <book_dir> <chapters>   Generate audio for chapter(s)
    python cli.py book <book_dir>                  Generate audio for every chapter
    python cli.py batch <books_root>               Generate audio for every book
    python cli.py providers                        Show registered TTS providers
    python cli.py validate                         Check provider configuration

Examples:
    python cli.py list books/mythos
    python cli.py generate books/mythos 1 3 chaos
    python cli.py generate books/mythos 2 -p openai --voice nova --force
    python cli.py batch books --max-concurrent 2 --skip-existing
"""

import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv


def _options(args):
    from epub_audio.tts.providers.base import ChapterAudioOptions

    return ChapterAudioOptions(
        provider=args.provider,
        voice=getattr(args, "voice", None),
        model=getattr(args, "model", None),
        format=getattr(args, "format", None),
        force_regenerate=getattr(args, "force", False),
    )


def _pipeline(args):
    from epub_audio.tts.pipeline import ChapterAudioPipeline

    if not os.path.isdir(args.book_dir):
        print(f"❌ Book directory not found: {args.book_dir}")
        sys.exit(1)
    return ChapterAudioPipeline(args.book_dir, provider=args.provider, options=_options(args))


def _print_summary(summary):
    print()
    for result in summary.results:
        icon = "✅" if result.succeeded else "❌"
        detail = result.output_path or result.error or result.status.value
        print(f"{icon} {result.identifier}: {detail}")
    print(f"\n📊 Results: {summary.succeeded} successful, {summary.failed} failed")


def list_chapters(args):
    """List chapters with their audio status for a provider."""
    from epub_audio.errors import EpubAudioError

    try:
        pipeline = _pipeline(args)
        chapters = pipeline.list_chapters()
    except EpubAudioError as e:
        print(f"❌ Error: {e}")
        sys.exit(1)

    metadata = pipeline.metadata
    print(f"📖 {metadata.title} by {metadata.author}")
    print(f"📑 {len(chapters)} chapters ({pipeline.capability.info.display_name})\n")
    for chapter, has_audio in chapters:
        status = "🎵" if has_audio else "  "
        print(f"  {status} {chapter.order:2d}. {chapter.title}")


async def generate_chapters_async(args):
    """Generate audio for one or more chapters."""
    pipeline = _pipeline(args)
    print(f"🎵 Generating audio for {len(args.chapters)} chapter(s)")
    print(f"   Provider: {pipeline.capability.info.display_name}")
    print(f"   Voice: {pipeline.options.voice}")
    print(f"   Format: {pipeline.options.format}")

    summary = await pipeline.generate_many(args.chapters)
    _print_summary(summary)

    not_found = [r.identifier for r in summary.results if r.status.value == "not_found"]
    if not_found:
        print("\n💡 Use 'list' to see available chapters")
    if summary.failed:
        sys.exit(1)


def generate_chapters(args):
    """Wrapper for async chapter generation."""
    _run(generate_chapters_async(args))


async def generate_book_async(args):
    """Generate audio for every chapter of a book."""
    pipeline = _pipeline(args)
    print(f"🎵 Generating audio for {args.book_dir} with {pipeline.capability.info.display_name}")

    summary = await pipeline.generate_all()
    _print_summary(summary)
    print(f"📁 Audio files available in: {pipeline.chapters_audio_dir}")
    if summary.failed:
        sys.exit(1)


def generate_book(args):
    """Wrapper for async book generation."""
    _run(generate_book_async(args))


async def batch_async(args):
    """Generate audio for every converted book under a directory."""
    from epub_audio.batch import BatchProcessor

    processor = BatchProcessor(
        provider=args.provider,
        max_concurrent=args.max_concurrent,
        skip_existing=args.skip_existing,
        options=_options(args),
    )
    books = processor.find_books(args.books_root)
    if not books:
        print(f"⚠️  No converted books found under {args.books_root}")
        return

    print(f"📚 Found {len(books)} books")
    for index, book in enumerate(books, start=1):
        print(f"  {index}. {os.path.relpath(book, args.books_root)}")

    report = await processor.run(books)
    print("\n🎉 Batch processing completed!")
    print(f"📊 Results: {len(report.successful) + len(report.skipped)} successful, {len(report.failed)} failed")
    if report.failed:
        sys.exit(1)


def batch(args):
    """Wrapper for async batch processing."""
    _run(batch_async(args))


def show_providers(args):
    """Show registered providers with their voices, models and formats."""
    from epub_audio.tts.providers.registry import default_registry

    registry = default_registry()
    for provider_id in registry.available_providers():
        info = registry.provider_info(provider_id)
        print(f"\n🤖 {info['name']} ({provider_id}) v{info['version']}")
        print(f"   {info['description']}")
        print("   Voices:")
        for voice in info["voices"]:
            print(f"     - {voice['id']} ({voice['gender']}, {voice['language']}): {voice['description']}")
        print("   Models:")
        for model in info["models"]:
            print(f"     - {model['id']}: {model['description']}")
        formats = ", ".join(f"{f['format']} (.{f['extension']})" for f in info["formats"])
        print(f"   Formats: {formats}")


def validate(args):
    """Validate the configuration of a provider."""
    from epub_audio.tts.providers.registry import default_registry

    result = default_registry().validate(args.provider)
    if result.valid:
        print(f"✅ {args.provider} configuration is valid")
        return

    print(f"❌ {args.provider} configuration is invalid:")
    for error in result.errors:
        print(f"   - {error}")
    sys.exit(1)


def _run(coro):
    from epub_audio.errors import EpubAudioError

    try:
        asyncio.run(coro)
    except EpubAudioError as e:
        print(f"\n❌ Error: {e}")
        sys.exit(1)


def _add_provider_argument(parser, default):
    parser.add_argument('--provider', '-p', default=default,
                        help=f'TTS provider (default: {default}). Options: google, openai')


def main():
    load_dotenv()

    from epub_audio.config import settings
    from epub_audio.utils.logging_config import configure_logging

    parser = argparse.ArgumentParser(
        description="epub-audio CLI - chapter audio for converted EPUB books",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s list books/mythos                       List chapters
  %(prog)s generate books/mythos 1                 Generate chapter 1
  %(prog)s generate books/mythos chaos titans      Match chapters by title
  %(prog)s generate books/mythos 2 -p openai -v nova
  %(prog)s book books/mythos --force               Regenerate all chapters
  %(prog)s batch books -c 2 --skip-existing        Every book under books/
  %(prog)s providers                               Show providers
  %(prog)s validate -p openai                      Check API key and defaults
        """
    )
    parser.add_argument('--log-level', default=settings.log_level,
                        choices=['debug', 'info', 'warn', 'error'],
                        help=f'Console/file log level (default: {settings.log_level})')

    subparsers = parser.add_subparsers(dest='command', help='Commands')
    default_provider = settings.default_provider

    # List command
    list_parser = subparsers.add_parser('list', help='List all chapters in a book')
    list_parser.add_argument('book_dir', help='Path to the converted book directory')
    _add_provider_argument(list_parser, default_provider)
    list_parser.set_defaults(func=list_chapters)

    # Generate command
    gen_parser = subparsers.add_parser('generate', help='Generate audio for specific chapter(s)')
    gen_parser.add_argument('book_dir', help='Path to the converted book directory')
    gen_parser.add_argument('chapters', nargs='+', help='Chapter number(s) or title(s)')
    _add_provider_argument(gen_parser, default_provider)
    gen_parser.add_argument('--voice', '-v', help='Voice to use (default: provider default)')
    gen_parser.add_argument('--model', '-m', help='Model to use (default: provider default)')
    gen_parser.add_argument('--format', '-f', help='Audio format (default: provider default)')
    gen_parser.add_argument('--force', action='store_true',
                            help='Regenerate even if audio exists')
    gen_parser.set_defaults(func=generate_chapters)

    # Book command
    book_parser = subparsers.add_parser('book', help='Generate audio for every chapter')
    book_parser.add_argument('book_dir', help='Path to the converted book directory')
    _add_provider_argument(book_parser, default_provider)
    book_parser.add_argument('--voice', '-v', help='Voice to use (default: provider default)')
    book_parser.add_argument('--force', action='store_true',
                             help='Regenerate even if audio exists')
    book_parser.set_defaults(func=generate_book)

    # Batch command
    batch_parser = subparsers.add_parser('batch', help='Generate audio for every book under a directory')
    batch_parser.add_argument('books_root', nargs='?', default=settings.books_dir,
                              help=f'Directory holding converted books (default: {settings.books_dir})')
    _add_provider_argument(batch_parser, default_provider)
    batch_parser.add_argument('--max-concurrent', '-c', type=int, default=settings.max_concurrent_books,
                              help=f'Books processed at once (default: {settings.max_concurrent_books})')
    batch_parser.add_argument('--skip-existing', '-s', action='store_true',
                              help='Skip books whose audio is already complete')
    batch_parser.set_defaults(func=batch)

    # Providers command
    providers_parser = subparsers.add_parser('providers', help='Show registered TTS providers')
    providers_parser.set_defaults(func=show_providers)

    # Validate command
    validate_parser = subparsers.add_parser('validate', help='Validate provider configuration')
    _add_provider_argument(validate_parser, default_provider)
    validate_parser.set_defaults(func=validate)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    configure_logging(args.log_level, settings.log_file)
    args.func(args)

if __name__ == "__main__":
    main()
