"""Livecast CLI — push live events and inspect a running server.

Usage:
    livecast serve                                   # Run the API + WebSocket server
    livecast status                                  # Connected viewers per room
    livecast campaigns                               # List campaigns
    livecast events -c 7                             # Recent events of campaign 7
    livecast product "Sneaker" 89.90 /objects/s.png -c 7
    livecast poll "Best color?" "Red, Green, Blue" -d 30
    livecast contest "Summer draw" "Gift card" 2026-08-31 -m 100
    livecast tick                                    # Run one scheduler pass now
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:5000"


def _api_url() -> str:
    return os.environ.get("LIVECAST_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Livecast server."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Inside an already running loop (e.g. CliRunner in an async test) the
    coroutine runs on a worker thread with its own loop.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "-"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _check(r: httpx.Response) -> dict | list:
    """Return the JSON body, or print the server's error and exit 1."""
    if r.status_code >= 400:
        try:
            detail = r.json().get("detail", r.text)
        except ValueError:
            detail = r.text
        if isinstance(detail, dict):
            detail = detail.get("message", detail)
        click.secho(f"Error {r.status_code}: {detail}", fg="red", err=True)
        sys.exit(1)
    return r.json()


async def _trigger(kind: str, body: dict) -> None:
    async with _client() as c:
        result = _check(await c.post(f"/api/events/{kind}", json=body))
    event = result["event"]
    target = f"campaign {event['campaignId']}" if "campaignId" in event else "all rooms"
    click.secho(f"Sent {kind} {event['data']['id']} to {target}", fg="green")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="livecast")
def main():
    """Livecast — live campaign events for viewer apps."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: LIVECAST_HOST)")
@click.option("--port", "-p", type=int, default=None, help="Port (default: PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the HTTP + WebSocket server."""
    import uvicorn

    from livecast.config import settings

    uvicorn.run(
        "livecast.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command()
def status():
    """Connected viewers, total and per room."""
    _run(_status_impl())


async def _status_impl():
    async with _client() as c:
        data = _check(await c.get("/api/status"))

    click.secho(f"Server: {data['server']}  (port {data['httpPort']})", bold=True)
    click.echo(f"Connected viewers: {data['connectedClients']}")
    rooms = data.get("rooms", {})
    if rooms:
        click.echo()
        for room_id, count in sorted(rooms.items(), key=lambda kv: int(kv[0])):
            label = "legacy" if room_id == "0" else f"campaign {room_id}"
            click.echo(f"  {label:16s}  {count}")


@main.command()
def campaigns():
    """List campaigns."""
    _run(_campaigns_impl())


async def _campaigns_impl():
    async with _client() as c:
        rows = _check(await c.get("/api/campaigns"))

    if not rows:
        click.echo("No campaigns found.")
        return
    for row in rows:
        row["state"] = "active" if row.get("isActive") else "ended"
    _print_table(rows, [
        ("ID", "id", 6),
        ("State", "state", 8),
        ("Name", "name", 40),
        ("Ends", "endDate", 26),
    ])


@main.command()
@click.option("--campaign-id", "-c", type=int, help="Campaign log (default: global buffer)")
@click.option("--limit", "-l", default=20, help="Max results")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def events(campaign_id: Optional[int], limit: int, as_json: bool):
    """Recent events, newest first."""
    _run(_events_impl(campaign_id, limit, as_json))


async def _events_impl(campaign_id: Optional[int], limit: int, as_json: bool):
    params: dict = {"limit": limit}
    if campaign_id is not None:
        params["campaignId"] = campaign_id
    async with _client() as c:
        rows = _check(await c.get("/api/events", params=params))

    if as_json:
        click.echo(_pretty_json(rows))
        return
    if not rows:
        click.echo("No events found.")
        return
    for e in rows:
        data = e.get("data", {})
        title = data.get("name") or data.get("question") or ""
        click.echo(f"  {e['type']:8s}  {data.get('id', '')[:22]:22s}  {title[:50]}")


@main.command()
@click.argument("name")
@click.argument("price")
@click.argument("image_url")
@click.option("--campaign-id", "-c", type=int, help="Target campaign (default: all rooms)")
@click.option("--description", default="", help="Product description")
@click.option("--currency", default="USD", show_default=True)
@click.option("--product-id", help="External product id")
def product(name: str, price: str, image_url: str, campaign_id: Optional[int],
            description: str, currency: str, product_id: Optional[str]):
    """Show a product to viewers."""
    body = {
        "name": name,
        "price": price,
        "imageUrl": image_url,
        "description": description,
        "currency": currency,
        "campaignId": campaign_id,
        "productId": product_id,
    }
    _run(_trigger("product", body))


@main.command()
@click.argument("question")
@click.argument("options")
@click.option("--duration", "-d", default="60", show_default=True, help="Seconds")
@click.option("--campaign-id", "-c", type=int, help="Target campaign (default: all rooms)")
def poll(question: str, options: str, duration: str, campaign_id: Optional[int]):
    """Start a poll. OPTIONS is a comma-separated list."""
    body = {
        "question": question,
        "options": options,
        "duration": duration,
        "campaignId": campaign_id,
    }
    _run(_trigger("poll", body))


@main.command()
@click.argument("name")
@click.argument("prize")
@click.argument("deadline")
@click.option("--max-participants", "-m", type=int, default=100, show_default=True)
@click.option("--campaign-id", "-c", type=int, help="Target campaign (default: all rooms)")
def contest(name: str, prize: str, deadline: str, max_participants: int,
            campaign_id: Optional[int]):
    """Announce a contest."""
    body = {
        "name": name,
        "prize": prize,
        "deadline": deadline,
        "maxParticipants": max_participants,
        "campaignId": campaign_id,
    }
    _run(_trigger("contest", body))


@main.command()
def tick():
    """Run one scheduler pass on the server now."""
    _run(_tick_impl())


async def _tick_impl():
    async with _client() as c:
        summary = _check(await c.post("/api/scheduler/tick"))

    click.secho(
        f"Checked {summary['campaigns']} campaign(s): "
        f"{len(summary['activated'])} activated, "
        f"{len(summary['deactivated'])} deactivated",
        bold=True,
    )
    for item in summary["activated"]:
        click.secho(f"  + {item['componentId']} in campaign {item['campaignId']}", fg="green")
    for item in summary["deactivated"]:
        click.secho(f"  - {item['componentId']} in campaign {item['campaignId']}", fg="yellow")
    if summary["conflicts"] or summary["errors"]:
        click.secho(
            f"  {summary['conflicts']} conflict(s), {summary['errors']} error(s); see server log",
            fg="red",
        )


if __name__ == "__main__":
    main()
