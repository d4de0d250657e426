#!/usr/bin/env python3
"""
transcript-search - Main CLI entry point

Index your coding assistant conversations, run the search server, and query it
from the command line.
"""

import sys
import asyncio
import argparse
from typing import Dict, Any

import requests

from transcript_indexer import ConversationIndexer, IndexerConfig, configure_logging

DEFAULT_SERVER = "http://127.0.0.1:8765"


class APIClient:
    """Small client for a running transcript-search server"""

    def __init__(self, base_url: str = DEFAULT_SERVER, timeout: float = 120.0):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def get(self, endpoint: str, params: Dict[str, Any] = None) -> Dict[str, Any]:
        """GET request"""
        response = requests.get(f"{self.base_url}{endpoint}", params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def post(self, endpoint: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """POST request"""
        response = requests.post(f"{self.base_url}{endpoint}", json=data, timeout=self.timeout)
        response.raise_for_status()
        return response.json()


def cmd_index(args):
    """Index conversations in this process (server must not be running)"""
    config = IndexerConfig.from_env()
    configure_logging(config, verbose=args.verbose)

    print("🚀 Indexing conversations...")
    indexer = ConversationIndexer(config)
    indexer.initialize()

    stats = asyncio.run(indexer.index_all(force=args.force))

    print(f"✅ Processed {stats.processed} conversations, added {stats.added} chunks")
    if stats.errors:
        print(f"⚠️  {len(stats.errors)} files failed:")
        for error in stats.errors:
            print(f"   • {error}")
        return 1
    return 0


def cmd_serve(args):
    """Run the API server with the file watcher"""
    import uvicorn

    uvicorn.run("server.main:app", host=args.host, port=args.port, log_level="info")
    return 0


def cmd_search(args):
    """Search through the running server"""
    client = APIClient(args.server)
    params = {
        'query': args.query,
        'limit': args.limit,
        'sort_by': args.sort_by,
    }
    if args.project:
        params['project'] = args.project
    if args.date_range:
        params['date_range'] = args.date_range

    try:
        response = client.get("/search", params=params)
    except requests.exceptions.ConnectionError:
        print("❌ Connection failed. Is the server running?")
        print("💡 Start it with: python transcript_search.py serve")
        return 1

    results = response['results']
    if not results:
        print("No relevant conversations found.")
        return 0

    for i, result in enumerate(results, 1):
        project_name = result['project'].rstrip('/').split('/')[-1] or result['project']
        print(f"\n## Result {i} ({project_name}, {result['timestamp'][:10]}) | Score: {result['score']:.3f}")
        print(result['content'])
        print("\n---")
    return 0


def cmd_status(args):
    """Show index status from the running server"""
    client = APIClient(args.server)

    print("📊 transcript-search Status")
    print("=" * 27)
    try:
        status = client.get("/index/status")
    except requests.exceptions.ConnectionError:
        print("❌ Connection failed. Is the server running?")
        return 1

    print(f"   Total chunks: {status['total_records']:,}")
    print(f"   Projects indexed: {status['distinct_projects']}")
    print(f"   Last updated: {status['last_updated'] or 'Never'}")
    return 0


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description='transcript-search - Semantic search over coding assistant conversations',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python transcript_search.py index                  # Index new and changed logs
  python transcript_search.py serve                  # Run the server and watcher
  python transcript_search.py search "flaky test fix" --date-range "last 7 days"
  python transcript_search.py status                 # Check index status
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    index_parser = subparsers.add_parser('index', help='Index conversation logs')
    index_parser.add_argument('--force', action='store_true', help='Reindex every log file')
    index_parser.add_argument('--verbose', action='store_true', help='Debug logging')

    serve_parser = subparsers.add_parser('serve', help='Run the API server')
    serve_parser.add_argument('--host', default='127.0.0.1')
    serve_parser.add_argument('--port', type=int, default=8765)

    search_parser = subparsers.add_parser('search', help='Search past conversations')
    search_parser.add_argument('query', help='Natural language query')
    search_parser.add_argument('--limit', type=int, default=5, help='Maximum results')
    search_parser.add_argument('--project', help='Filter to projects containing this string')
    search_parser.add_argument('--date-range', help="e.g. 'today', 'last week', 'last 3 days'")
    search_parser.add_argument('--sort-by', choices=['relevance', 'recency'], default='relevance')
    search_parser.add_argument('--server', default=DEFAULT_SERVER)

    status_parser = subparsers.add_parser('status', help='Show index status')
    status_parser.add_argument('--server', default=DEFAULT_SERVER)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        'index': cmd_index,
        'serve': cmd_serve,
        'search': cmd_search,
        'status': cmd_status,
    }
    return commands[args.command](args)


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        sys.exit(0)
