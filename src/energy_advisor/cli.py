"""Command-line interface for the household energy advisor."""

import json
import logging
from datetime import date, datetime, time, timedelta
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from . import db
from .analysis import comparison, daily, disaggregation, solar_performance
from .analysis.advice import generate_energy_advice
from .assets import (
    add_electric_vehicle,
    add_home_battery,
    get_electric_vehicles,
    get_home_batteries,
    remove_electric_vehicle,
    remove_home_battery,
)
from .collectors.provider import ProviderError
from .consumption import (
    cleanup_old_data,
    get_consumption_with_gaps,
    link_energy_account,
    sync_consumption_data,
)
from .events import list_events, seed_events
from .models import ORIENTATIONS, SolarSystemConfig
from .solar import calculate_total_generation, generate_daily_forecasts, get_solar_config, store_solar_config
from .tariffs import (
    get_active_tariff_structure,
    get_tariff_structure,
    load_tariff_from_yaml,
    map_tariff_to_intervals,
    store_tariff_structure,
)

console = Console()

SHADING_STYLES = {"green": "green", "yellow": "yellow", "red": "red", "none": ""}
PRIORITY_STYLES = {"high": "red", "medium": "yellow", "low": "dim"}


def parse_date(value: str | None) -> date:
    return datetime.fromisoformat(value).date() if value else date.today()


def print_json(data) -> None:
    click.echo(json.dumps(data, indent=2))


@click.group()
@click.option("--db-path", type=click.Path(), help="Path to SQLite database")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, db_path, verbose):
    """Household energy advisor - tariffs, solar forecasts and usage advice."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = Path(db_path) if db_path else None


# Database commands
@cli.group("db")
def database():
    """Database management commands."""
    pass


@database.command("init")
@click.pass_context
def db_init(ctx):
    """Initialize the database schema."""
    db.init_db(ctx.obj["db_path"])
    console.print("[green]Database initialized successfully[/green]")


@database.command("stats")
@click.pass_context
def db_stats(ctx):
    """Show database statistics."""
    stats = db.get_stats(ctx.obj["db_path"])

    table = Table(title="Database Statistics")
    table.add_column("Category", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Range")

    readings = stats["consumption_readings"]
    table.add_row(
        "Consumption readings",
        str(readings["count"]),
        f"{readings['earliest'] or 'N/A'} → {readings['latest'] or 'N/A'}",
    )
    for user_id, count in stats.get("consumption_by_user", {}).items():
        table.add_row(f"  └ {user_id}", str(count), "")

    table.add_row("Tariff structures", str(stats["tariff_structures"]["count"]), "")
    table.add_row("Solar systems", str(stats["solar_systems"]["count"]), "")
    table.add_row("Electric vehicles", str(stats["electric_vehicles"]["count"]), "")
    table.add_row("Home batteries", str(stats["home_batteries"]["count"]), "")
    table.add_row("Energy events", str(stats["energy_events"]["count"]), "")

    console.print(table)


# Tariff commands
@cli.group()
def tariff():
    """Tariff management commands."""
    pass


@tariff.command("load")
@click.option("--user", required=True, help="User ID")
@click.option("--config", type=click.Path(exists=True), help="Path to tariffs.yaml")
@click.pass_context
def tariff_load(ctx, user, config):
    """Load a tariff structure from YAML config, replacing the current one."""
    try:
        structure = load_tariff_from_yaml(user, Path(config) if config else None)
        store_tariff_structure(structure, ctx.obj["db_path"])
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return
    console.print(f"[green]Loaded tariff with {len(structure.periods)} period(s) for {user}[/green]")


@tariff.command("show")
@click.option("--user", required=True, help="User ID")
@click.option("--date", "date_str", help="Date (YYYY-MM-DD), defaults to today")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tariff_show(ctx, user, date_str, as_json):
    """Show the half-hourly prices for a day."""
    target = parse_date(date_str)
    stored = get_tariff_structure(user, ctx.obj["db_path"])
    intervals = map_tariff_to_intervals(get_active_tariff_structure(user, ctx.obj["db_path"]), target)

    if as_json:
        print_json([i.to_dict() for i in intervals])
        return

    if stored is None:
        console.print("[yellow]No tariff stored, showing the default tariff[/yellow]")

    table = Table(title=f"Tariff for {user} on {target.isoformat()}")
    table.add_column("Time", style="cyan")
    table.add_column("Period")
    table.add_column("Price/kWh", justify="right")
    for interval in intervals:
        table.add_row(
            f"{interval.start_time} - {interval.end_time}",
            interval.period_name,
            f"{interval.price_per_kwh:.3f}",
        )
    console.print(table)


# Solar commands
@cli.group()
def solar():
    """Solar system commands."""
    pass


@solar.command("set")
@click.option("--user", required=True, help="User ID")
@click.option("--size", type=float, help="System size (kW)")
@click.option("--tilt", type=float, help="Panel tilt (degrees)")
@click.option("--orientation", type=click.Choice(ORIENTATIONS, case_sensitive=False), help="Panel orientation")
@click.option("--none", "no_solar", is_flag=True, help="Record that the home has no solar")
@click.pass_context
def solar_set(ctx, user, size, tilt, orientation, no_solar):
    """Configure a user's solar system."""
    if no_solar:
        config = SolarSystemConfig(has_solar=False)
    else:
        config = SolarSystemConfig(
            has_solar=True,
            system_size_kw=size,
            tilt_degrees=tilt,
            orientation=orientation.upper() if orientation else None,
        )

    try:
        store_solar_config(user, config, ctx.obj["db_path"])
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return
    console.print(f"[green]Saved solar configuration for {user}[/green]")


@solar.command("forecast")
@click.option("--user", required=True, help="User ID")
@click.option("--date", "date_str", help="Date (YYYY-MM-DD), defaults to today")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def solar_forecast(ctx, user, date_str, as_json):
    """Show the solar forecast for a day and the day after."""
    config = get_solar_config(user, ctx.obj["db_path"])
    forecasts = generate_daily_forecasts(config, parse_date(date_str))

    if as_json:
        print_json({key: f.to_dict() for key, f in forecasts.items()})
        return

    if not config.has_solar:
        console.print(f"[yellow]{user} has no solar system configured[/yellow]")

    table = Table(title=f"Solar Forecast for {user}")
    table.add_column("Time", style="cyan")
    table.add_column(forecasts["today"].date.isoformat(), justify="right")
    table.add_column(forecasts["tomorrow"].date.isoformat(), justify="right")
    for today_slot, tomorrow_slot in zip(forecasts["today"].intervals, forecasts["tomorrow"].intervals):
        if today_slot.generation_kwh == 0 and tomorrow_slot.generation_kwh == 0:
            continue
        table.add_row(
            today_slot.start_time.strftime("%H:%M"),
            f"{today_slot.generation_kwh:.3f}",
            f"{tomorrow_slot.generation_kwh:.3f}",
        )
    table.add_row(
        "Total",
        f"{calculate_total_generation(forecasts['today']):.2f} kWh",
        f"{calculate_total_generation(forecasts['tomorrow']):.2f} kWh",
        style="bold",
    )
    console.print(table)


@solar.command("performance")
@click.option("--user", required=True, help="User ID")
@click.option("--days", default=30, help="Number of days to include")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def solar_perf(ctx, user, days, as_json):
    """Estimate solar self-consumption and export."""
    end = date.today()
    result = solar_performance.calculate_solar_performance(
        user, end - timedelta(days=days), end, ctx.obj["db_path"]
    )

    if as_json:
        print_json(result)
        return

    if result is None:
        console.print(f"[yellow]{user} has no solar system configured[/yellow]")
        return

    console.print(f"Solar Performance ({result['days']} days with data)")
    console.print(f"- Generation: {result['total_generation_kwh']} kWh")
    console.print(f"- Consumption: {result['total_consumption_kwh']} kWh")
    console.print(
        f"- Self-consumed: {result['self_consumption_kwh']} kWh ({result['self_consumption_percentage']}%)"
    )
    console.print(f"- Exported: {result['total_export_kwh']} kWh ({result['export_percentage']}%)")
    for recommendation in result["recommendations"]:
        console.print(f"  • {recommendation}")


# Asset commands
@cli.group()
def ev():
    """Electric vehicle commands."""
    pass


@ev.command("add")
@click.option("--user", required=True, help="User ID")
@click.option("--make", required=True, help="Vehicle make")
@click.option("--model", required=True, help="Vehicle model")
@click.option("--miles", type=float, required=True, help="Average daily miles")
@click.option("--speed", type=float, help="Charging speed (kW), default 7.0")
@click.option("--capacity", type=float, help="Battery capacity (kWh), inferred if omitted")
@click.pass_context
def ev_add(ctx, user, make, model, miles, speed, capacity):
    """Add an electric vehicle."""
    try:
        vehicle = add_electric_vehicle(
            user, make, model, miles, charging_speed_kw=speed, battery_capacity_kwh=capacity,
            db_path=ctx.obj["db_path"],
        )
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return
    console.print(
        f"[green]Added {vehicle.make} {vehicle.model} (#{vehicle.id}, "
        f"{vehicle.battery_capacity_kwh:g} kWh)[/green]"
    )


@ev.command("list")
@click.option("--user", required=True, help="User ID")
@click.pass_context
def ev_list(ctx, user):
    """List a user's electric vehicles."""
    vehicles = get_electric_vehicles(user, ctx.obj["db_path"])
    if not vehicles:
        console.print("[yellow]No electric vehicles configured[/yellow]")
        return

    table = Table(title=f"Electric Vehicles for {user}")
    table.add_column("ID", style="cyan")
    table.add_column("Vehicle")
    table.add_column("Battery", justify="right")
    table.add_column("Charger", justify="right")
    table.add_column("Daily miles", justify="right")
    for v in vehicles:
        table.add_row(
            str(v.id),
            f"{v.make} {v.model}",
            f"{v.battery_capacity_kwh:g} kWh",
            f"{v.charging_speed_kw:g} kW",
            f"{v.average_daily_miles:g}",
        )
    console.print(table)


@ev.command("remove")
@click.option("--user", required=True, help="User ID")
@click.argument("vehicle_id", type=int)
@click.pass_context
def ev_remove(ctx, user, vehicle_id):
    """Remove an electric vehicle."""
    if remove_electric_vehicle(user, vehicle_id, ctx.obj["db_path"]):
        console.print(f"[green]Removed vehicle #{vehicle_id}[/green]")
    else:
        console.print(f"[red]Vehicle #{vehicle_id} not found[/red]")


@cli.group()
def battery():
    """Home battery commands."""
    pass


@battery.command("add")
@click.option("--user", required=True, help="User ID")
@click.option("--power", type=float, required=True, help="Power rating (kW)")
@click.option("--capacity", type=float, required=True, help="Capacity (kWh)")
@click.pass_context
def battery_add(ctx, user, power, capacity):
    """Add a home battery."""
    try:
        unit = add_home_battery(user, power, capacity, ctx.obj["db_path"])
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return
    console.print(f"[green]Added battery #{unit.id} ({unit.capacity_kwh:g} kWh, {unit.power_kw:g} kW)[/green]")


@battery.command("list")
@click.option("--user", required=True, help="User ID")
@click.pass_context
def battery_list(ctx, user):
    """List a user's home batteries."""
    batteries = get_home_batteries(user, ctx.obj["db_path"])
    if not batteries:
        console.print("[yellow]No home batteries configured[/yellow]")
        return

    table = Table(title=f"Home Batteries for {user}")
    table.add_column("ID", style="cyan")
    table.add_column("Power", justify="right")
    table.add_column("Capacity", justify="right")
    for b in batteries:
        table.add_row(str(b.id), f"{b.power_kw:g} kW", f"{b.capacity_kwh:g} kWh")
    console.print(table)


@battery.command("remove")
@click.option("--user", required=True, help="User ID")
@click.argument("battery_id", type=int)
@click.pass_context
def battery_remove(ctx, user, battery_id):
    """Remove a home battery."""
    if remove_home_battery(user, battery_id, ctx.obj["db_path"]):
        console.print(f"[green]Removed battery #{battery_id}[/green]")
    else:
        console.print(f"[red]Battery #{battery_id} not found[/red]")


# Account and consumption commands
@cli.group()
def account():
    """Energy provider account commands."""
    pass


@account.command("link")
@click.option("--user", required=True, help="User ID")
@click.option("--account-id", required=True, help="Provider account ID")
@click.option("--password", prompt=True, hide_input=True, help="Provider account password")
@click.pass_context
def account_link(ctx, user, account_id, password):
    """Validate provider credentials and link the account."""
    try:
        result = link_energy_account(user, account_id, password, db_path=ctx.obj["db_path"])
    except ProviderError as e:
        console.print(f"[red]Provider error: {e}[/red]")
        return

    if result["success"]:
        console.print(f"[green]{result['message']}[/green]")
    else:
        console.print(f"[red]{result['message']}[/red]")


@cli.group()
def consumption():
    """Consumption data commands."""
    pass


@consumption.command("sync")
@click.option("--user", required=True, help="User ID")
@click.option("--days", default=7, help="Number of days to fetch (default: 7)")
@click.pass_context
def consumption_sync(ctx, user, days):
    """Fetch recent readings from the energy provider."""
    console.print(f"[cyan]Fetching last {days} days for {user}...[/cyan]")
    result = sync_consumption_data(user, days=days, db_path=ctx.obj["db_path"])

    for error in result["errors"]:
        console.print(f"[red]Sync failed: {error}[/red]")
    if not result["errors"]:
        console.print(f"[green]Synced {result['synced']} readings[/green]")


@consumption.command("show")
@click.option("--user", required=True, help="User ID")
@click.option("--date", "date_str", help="Date (YYYY-MM-DD), defaults to today")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def consumption_show(ctx, user, date_str, as_json):
    """Show half-hourly consumption for a day, with gaps."""
    target = parse_date(date_str)
    slots = get_consumption_with_gaps(user, target, ctx.obj["db_path"])

    if as_json:
        print_json([{"timestamp": s.timestamp.isoformat(), "consumption_kwh": s.consumption_kwh} for s in slots])
        return

    title = f"Consumption for {user} on {target.isoformat()}"
    if target > date.today():
        title += " (estimated)"
    table = Table(title=title)
    table.add_column("Time", style="cyan")
    table.add_column("kWh", justify="right")
    for slot in slots:
        value = "[dim]no data[/dim]" if slot.consumption_kwh is None else f"{slot.consumption_kwh:.2f}"
        table.add_row(slot.timestamp.strftime("%H:%M"), value)
    console.print(table)

    known = [s.consumption_kwh for s in slots if s.consumption_kwh is not None]
    console.print(f"Total: {sum(known):.2f} kWh ({len(slots) - len(known)} missing slots)")


@consumption.command("cleanup")
@click.option("--user", required=True, help="User ID")
@click.pass_context
def consumption_cleanup(ctx, user):
    """Delete readings older than the retention window."""
    count = cleanup_old_data(user, ctx.obj["db_path"])
    console.print(f"[green]Deleted {count} old readings[/green]")


# Event commands
@cli.group()
def events():
    """Energy event commands."""
    pass


@events.command("seed")
@click.option("--days", default=30, help="Number of days to schedule")
@click.pass_context
def events_seed(ctx, days):
    """Replace all events with a sample schedule."""
    count = seed_events(days, ctx.obj["db_path"])
    console.print(f"[green]Seeded {count} energy events[/green]")


@events.command("list")
@click.pass_context
def events_list(ctx):
    """List all energy events."""
    event_list = list_events(ctx.obj["db_path"])
    if not event_list:
        console.print("[yellow]No events found[/yellow]")
        return

    table = Table(title="Energy Events")
    table.add_column("Date", style="cyan")
    table.add_column("Time")
    table.add_column("Type")
    table.add_column("Incentive", justify="right")
    table.add_column("Targets")
    for e in event_list:
        table.add_row(
            e.start_time.strftime("%Y-%m-%d"),
            f"{e.start_time.strftime('%H:%M')} - {e.end_time.strftime('%H:%M')}",
            e.event_type,
            f"${e.incentive_amount:.2f}",
            e.target_user_ids,
        )
    console.print(table)


# Analysis commands
def _advice_table(title: str, items) -> Table:
    table = Table(title=title)
    table.add_column("Priority")
    table.add_column("When", style="cyan")
    table.add_column("Advice")
    table.add_column("Savings", justify="right")
    for item in items:
        style = PRIORITY_STYLES.get(item.priority, "")
        table.add_row(
            f"[{style}]{item.priority}[/{style}]",
            f"{item.recommended_time_start}-{item.recommended_time_end}",
            f"[bold]{item.title}[/bold]\n{item.description}",
            f"${item.estimated_savings:.2f}",
        )
    return table


@cli.command()
@click.option("--user", required=True, help="User ID")
@click.option("--date", "date_str", help="Date (YYYY-MM-DD), defaults to today")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def advice(ctx, user, date_str, as_json):
    """Generate ranked energy advice for a day."""
    target = parse_date(date_str)
    response = generate_energy_advice(user, target, ctx.obj["db_path"])

    if as_json:
        print_json(response.to_dict())
        return

    sections = [
        ("General Advice", response.general_advice),
        ("EV Charging", response.ev_advice),
        ("Home Battery", response.battery_advice),
    ]
    for title, items in sections:
        if items:
            console.print(_advice_table(f"{title} - {target.isoformat()}", items))
    if not any(items for _, items in sections):
        console.print("[yellow]No advice for this day[/yellow]")


@cli.command()
@click.option("--user", required=True, help="User ID")
@click.option("--days", default=7, help="Number of days to include")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def disaggregate(ctx, user, days, as_json):
    """Estimate consumption by device category."""
    end = datetime.now()
    start = datetime.combine((end - timedelta(days=days)).date(), time.min)
    result = disaggregation.disaggregate_consumption(user, start, end, ctx.obj["db_path"])

    if as_json:
        print_json(result.to_dict())
        return

    table = Table(title=f"Consumption Breakdown (last {days} days)")
    table.add_column("Category", style="cyan")
    table.add_column("kWh", justify="right")
    table.add_column("Share", justify="right")
    for label, key in [
        ("Heating/cooling", "hvac"),
        ("Water heater", "water_heater"),
        ("EV charging", "ev_charging"),
        ("Baseload", "baseload"),
        ("Discretionary", "discretionary"),
    ]:
        table.add_row(label, f"{getattr(result, key + '_kwh'):.2f}", f"{getattr(result, key + '_percentage'):.1f}%")
    table.add_row("Total", f"{result.total_kwh:.2f}", "", style="bold")
    console.print(table)

    if result.ev_pattern_detected and not result.has_configured_ev:
        console.print("[yellow]EV charging pattern detected but no EV is configured[/yellow]")
    console.print(f"[dim]{result.note}[/dim]")


@cli.command()
@click.option("--user", required=True, help="User ID")
@click.option("--date", "date_str", help="Date (YYYY-MM-DD), defaults to today")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def chart(ctx, user, date_str, as_json):
    """Show the daily chart with shading and current status."""
    data = daily.generate_chart_data(user, parse_date(date_str), ctx.obj["db_path"])

    if as_json:
        print_json(data)
        return

    table = Table(title=f"Daily Energy Chart - {data['date']}")
    table.add_column("Time", style="cyan")
    table.add_column("Solar", justify="right")
    table.add_column("Usage", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Period")
    for row in data["intervals"]:
        usage = "-" if row["consumption_kwh"] is None else f"{row['consumption_kwh']:.2f}"
        table.add_row(
            row["start_time"],
            f"{row['solar_generation_kwh']:.2f}",
            usage,
            f"{row['price_per_kwh']:.3f}",
            row["period_name"],
            style=SHADING_STYLES[row["shading"]],
        )
    console.print(table)

    status = data["current_status"]
    if status:
        console.print(
            f"\n[cyan]Now:[/cyan] solar {status['solar_state']}, usage {status['consumption_state']}, "
            f"{status['current_price']:.3f}/kWh"
        )
        console.print(f"[bold]{status['action_prompt']}[/bold]")


@cli.command()
@click.option("--user", required=True, help="User ID")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def compare(ctx, user, as_json):
    """Compare usage with similar households."""
    data = comparison.calculate_household_comparison(user, ctx.obj["db_path"])

    if as_json:
        print_json(data)
    else:
        console.print(comparison.format_comparison_text(data))


if __name__ == "__main__":
    cli()
