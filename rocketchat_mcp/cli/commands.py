"""CLI commands for the Rocket.Chat client."""
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import click

from rocketchat_mcp.analytics.reports import AnalyticsService
from rocketchat_mcp.api.exceptions import RocketChatException
from rocketchat_mcp.api.rocketchat_client import RocketChatClient
from rocketchat_mcp.config import Config
from rocketchat_mcp.logger import setup_logger
from rocketchat_mcp.search.engine import SearchService

logger = logging.getLogger(__name__)

env_option = click.option('--env', type=click.Path(), help='Path to .env file')


def _make_client(config: Config) -> RocketChatClient:
    return RocketChatClient(
        config.rocketchat.credentials,
        timeout=config.rocketchat.timeout,
        verify_ssl=config.rocketchat.verify_ssl
    )


def _jsonable(value: Any) -> Any:
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


def _run(env: Optional[str], action: Callable[[RocketChatClient, Config], Awaitable[Any]]) -> Any:
    """Load config, run ``action`` with a connected client and return its result"""
    try:
        config = Config(Path(env) if env else None)
        setup_logger(config)

        async def runner():
            async with _make_client(config) as client:
                return await action(client, config)

        return asyncio.run(runner())

    except (RocketChatException, ValueError) as e:
        click.secho(f"❌ Error: {e}", fg='red', err=True)
        raise click.Abort()


def _echo_json(result: Any) -> None:
    click.echo(json.dumps(_jsonable(result), indent=2, ensure_ascii=False, default=str))


@click.group()
def cli():
    """Rocket.Chat client CLI"""
    pass


@cli.command()
@env_option
def test_connection(env: Optional[str]):
    """Check server URL and token pair"""
    result = _run(env, lambda client, config: client.test_connection())
    if result['success']:
        user = result['user']
        emails = user.get('emails') or [{}]
        click.secho("✅ Connection successful!", fg='green', bold=True)
        click.echo(f"  User:     {user.get('name')}")
        click.echo(f"  Username: {user.get('username')}")
        click.echo(f"  Email:    {emails[0].get('address', 'N/A')}")
    else:
        click.secho(f"❌ Connection failed: {result['error']}", fg='red')
        raise click.Abort()


@cli.command()
@click.option('--type', 'kind', type=click.Choice(['public', 'private', 'direct']), help='Only one room type')
@env_option
def list_rooms(kind: Optional[str], env: Optional[str]):
    """List rooms visible to the user"""
    rooms = _run(env, lambda client, config: client.list_rooms(kind))

    click.secho(f"\n📋 Rooms:\n", fg='green', bold=True)
    for i, room in enumerate(rooms, 1):
        click.echo(f"  {i}. {room.name or room.display_name or 'Unknown'}")
        click.secho(f"     ID: {room.id}", fg='cyan')
        if room.topic:
            click.echo(f"     Topic: {room.topic}")
    click.secho(f"\nTotal: {len(rooms)} rooms", fg='green')


@cli.command()
@click.argument('room')
@env_option
def room_info(room: str, env: Optional[str]):
    """Show a room by id or name"""
    _echo_json(_run(env, lambda client, config: client.get_room_info(room)))


@cli.command()
@click.argument('room_id')
@click.option('--count', default=20, show_default=True, help='Number of messages')
@click.option('--days', type=int, help='Only messages from the last N days')
@env_option
def messages(room_id: str, count: int, days: Optional[int], env: Optional[str]):
    """Show recent messages of a room"""
    if days:
        result = _run(env, lambda client, config: client.get_recent_messages(room_id, count, days))
    else:
        result = _run(env, lambda client, config: client.get_messages(room_id, count))
    _echo_json(result)


@cli.command()
@click.argument('query')
@click.option('--room', 'room_id', help='Room id to search in')
@click.option('--limit', default=20, show_default=True, help='Maximum results')
@env_option
def search(query: str, room_id: Optional[str], limit: int, env: Optional[str]):
    """Search messages by keyword"""
    _echo_json(_run(
        env,
        lambda client, config: SearchService(client, config.limits).search(query, room_id, limit)
    ))


@cli.command()
@click.argument('query')
@click.option('--room', 'room_id', help='Room id to search in')
@click.option('--user', 'user_id', help='Only messages by this user id')
@click.option('--from', 'date_from', help='ISO timestamp lower bound')
@click.option('--to', 'date_to', help='ISO timestamp upper bound')
@click.option('--type', 'message_type', default='all', show_default=True,
              type=click.Choice(['all', 'mentions', 'starred', 'pinned']))
@click.option('--sort-by', type=click.Choice(['timestamp', 'relevance']))
@click.option('--sort-order', default='desc', show_default=True, type=click.Choice(['asc', 'desc']))
@click.option('--count', default=20, show_default=True)
@click.option('--offset', default=0, show_default=True)
@env_option
def advanced_search(query: str, env: Optional[str], **filters):
    """Search messages with author, date and type filters"""
    _echo_json(_run(
        env,
        lambda client, config: SearchService(client, config.limits).advanced_search(query=query, **filters)
    ))


@cli.command()
@click.argument('query')
@click.option('--type', 'search_type', default='all', show_default=True,
              type=click.Choice(['messages', 'rooms', 'users', 'all']))
@click.option('--limit', type=int, help='Maximum results per category')
@env_option
def global_search(query: str, search_type: str, limit: Optional[int], env: Optional[str]):
    """Search messages, rooms and users"""
    _echo_json(_run(
        env,
        lambda client, config: SearchService(client, config.limits).global_search(query, search_type, limit)
    ))


@cli.command()
@click.argument('room_id')
@click.option('--from', 'date_from', help='ISO timestamp lower bound')
@click.option('--to', 'date_to', help='ISO timestamp upper bound')
@click.option('--messages/--no-messages', 'include_messages', default=True, show_default=True)
@click.option('--files', 'include_files', is_flag=True, help='Include file statistics')
@click.option('--members', 'include_members', is_flag=True, help='Include member statistics')
@env_option
def room_analytics(room_id: str, env: Optional[str], **options):
    """Show statistics for a room"""
    _echo_json(_run(
        env,
        lambda client, config: AnalyticsService(client, config.limits).get_room_analytics(room_id, **options)
    ))


@cli.command()
@click.argument('user_id')
@click.option('--from', 'date_from', help='ISO timestamp lower bound')
@click.option('--to', 'date_to', help='ISO timestamp upper bound')
@click.option('--room', 'rooms', multiple=True, help='Room id to include (repeatable)')
@env_option
def user_activity(user_id: str, date_from: Optional[str], date_to: Optional[str], rooms, env: Optional[str]):
    """Summarize a user's recent activity"""
    _echo_json(_run(
        env,
        lambda client, config: AnalyticsService(client, config.limits).get_user_activity_summary(
            user_id, date_from, date_to, list(rooms) or None
        )
    ))


@cli.command()
@click.argument('room_id')
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--description', help='Message text sent with the file')
@click.option('--thread', 'thread_id', help='Thread to post into')
@env_option
def upload(room_id: str, file_path: str, description: Optional[str], thread_id: Optional[str],
           env: Optional[str]):
    """Upload a file to a room"""
    uploaded = _run(env, lambda client, config: client.upload_file(room_id, file_path, description, thread_id))
    click.secho(f"✅ Uploaded {uploaded.name}", fg='green')
    click.echo(f"  ID:   {uploaded.id}")
    click.echo(f"  Size: {uploaded.size} bytes")
    click.secho(f"\nDownload with: download {uploaded.id} {uploaded.name}", fg='yellow')


@cli.command()
@click.argument('file_id')
@click.argument('file_name')
@click.option('--out', 'save_path', type=click.Path(), default='.', show_default=True,
              help='Target file or directory')
@env_option
def download(file_id: str, file_name: str, save_path: str, env: Optional[str]):
    """Download a file by id and name"""
    result = _run(env, lambda client, config: client.download_file(file_id, file_name, save_path))
    click.secho(f"✅ Saved {result['size']} bytes to {result['path']}", fg='green')


if __name__ == '__main__':
    cli()
