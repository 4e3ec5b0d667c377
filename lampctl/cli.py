"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from lampctl.api import preview_frame
from lampctl.core.config import load_settings
from lampctl.core.errors import InvalidInputError, LampctlError
from lampctl.core.model import Action, DispatchReport, Schedule, ScheduleSlot, TimeSync, TurnLight
from lampctl.core.service import LampService

app = typer.Typer(help="Streetlight commands from ThingsBoard assets to the ChirpStack downlink queue")


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="Path to config YAML"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to stderr"),
) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = config


def _build_service(ctx: typer.Context) -> LampService:
    return LampService(load_settings(ctx.obj))


def _echo_report(report: DispatchReport) -> None:
    for item in report.outcomes:
        line = f"{item.device_id} {item.dev_eui or '-'} {item.outcome.value}"
        if item.detail:
            line += f" ({item.detail})"
        typer.echo(line)
    typer.echo(
        f"Asset {report.asset_id}: {len(report.sent)} sent, "
        f"{len(report.failed)} failed, {len(report.pending)} pending"
    )


@app.command("light")
def light(
    ctx: typer.Context,
    asset_id: str,
    state: str = typer.Argument(..., help="on or off"),
) -> None:
    """Turn the lights of every device under ASSET_ID on or off."""
    try:
        service = _build_service(ctx)
        report = asyncio.run(service.turn_light(asset_id, state))
        _echo_report(report)
    except LampctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("sync")
def sync(
    ctx: typer.Context,
    asset_id: str,
    at: str | None = typer.Option(
        None,
        "--at",
        help="Timestamp as '<Weekday> <YYYY-MM-DD> <HH:MM:SS>'; defaults to now",
    ),
) -> None:
    """Synchronize the device clocks under ASSET_ID."""
    try:
        service = _build_service(ctx)
        report = asyncio.run(service.time_sync(asset_id, at))
        _echo_report(report)
    except LampctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("schedule")
def schedule(
    ctx: typer.Context,
    asset_id: str,
    time1: str = typer.Option(..., "--time1", help="First slot time, HH:MM"),
    dim1: int = typer.Option(..., "--dim1", help="First slot dim level, 0-255"),
    time2: str = typer.Option(..., "--time2", help="Second slot time, HH:MM"),
    dim2: int = typer.Option(..., "--dim2", help="Second slot dim level, 0-255"),
) -> None:
    """Program the two-slot daily dimming schedule under ASSET_ID."""
    try:
        service = _build_service(ctx)
        report = asyncio.run(
            service.schedule(
                asset_id,
                ScheduleSlot(time=time1, dim_level=dim1),
                ScheduleSlot(time=time2, dim_level=dim2),
            )
        )
        _echo_report(report)
    except LampctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("devices")
def devices(ctx: typer.Context, asset_id: str) -> None:
    """List the devices under ASSET_ID with their UID and EUI."""
    try:
        service = _build_service(ctx)
        fetched = asyncio.run(service.list_devices(asset_id))
        if not fetched.devices and not fetched.skipped:
            typer.echo(f"No devices found under asset {asset_id}")
            return

        for device in fetched.devices:
            typer.echo(f"{device.device_id} uid={device.data_uid} eui={device.dev_eui}")
        for item in fetched.skipped:
            typer.echo(f"{item.device_id} {item.outcome.value} ({item.detail})")
    except LampctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("encode")
def encode_frame(
    uid: str,
    light: str | None = typer.Option(None, "--light", help="on or off"),
    sync_at: str | None = typer.Option(None, "--sync", help="'<Weekday> <YYYY-MM-DD> <HH:MM:SS>'"),
    time1: str | None = typer.Option(None, "--time1"),
    dim1: int | None = typer.Option(None, "--dim1"),
    time2: str | None = typer.Option(None, "--time2"),
    dim2: int | None = typer.Option(None, "--dim2"),
) -> None:
    """Print the frame for a command without sending anything.

    Exactly one of --light, --sync, or the schedule options must be given.
    """
    try:
        action = _offline_action(light, sync_at, (time1, dim1, time2, dim2))
        preview = preview_frame(action, uid)
        typer.echo(f"hex={preview.hex}")
        typer.echo(f"base64={preview.payload}")
    except LampctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def _offline_action(
    light: str | None,
    sync_at: str | None,
    slots: tuple[str | None, int | None, str | None, int | None],
) -> Action:
    wants_schedule = any(value is not None for value in slots)
    chosen = [light is not None, sync_at is not None, wants_schedule]
    if sum(chosen) != 1:
        raise InvalidInputError("Choose exactly one of --light, --sync, or the schedule options")

    if light is not None:
        return TurnLight.parse(light)
    if sync_at is not None:
        return TimeSync(timestamp=sync_at)
    time1, dim1, time2, dim2 = slots
    return Schedule(
        slot1=ScheduleSlot(time=time1, dim_level=dim1),
        slot2=ScheduleSlot(time=time2, dim_level=dim2),
    )


def run() -> None:
    app()


if __name__ == "__main__":
    run()
