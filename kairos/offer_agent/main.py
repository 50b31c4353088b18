import asyncio
import contextlib
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from kairos.offer_agent.agents.decision.decision import decide
from kairos.offer_agent.agents.decision.types import DecisionKind
from kairos.offer_agent.agents.detail.types import ExtractedDetailInfo
from kairos.offer_agent.agents.orchestrator.orchestrator import OfferOrchestrator
from kairos.offer_agent.clients.route_client import GoogleRouteClient, NullRouteOracle, RouteOracle
from kairos.offer_agent.config import (
    AgentConfiguration,
    ConfigProvider,
    ShadowConfigProvider,
    StaticConfigProvider,
    YamlConfigProvider,
    load_configuration_file,
    settings,
)
from kairos.offer_agent.controllers.adb_controller import (
    AdbActuator,
    AdbSnapshotProvider,
    get_adb_device,
)
from kairos.offer_agent.observability import LoggingObservabilityProvider
from kairos.offer_agent.utils.errors import OfferAgentError
from kairos.offer_agent.utils.logger import get_logger, set_global_level
from kairos.offer_agent.utils.ui_hierarchy import dump_tree

app = typer.Typer(add_completion=False, pretty_exceptions_enable=False)
logger = get_logger(__name__)


def build_route_oracle() -> RouteOracle:
    if settings.GOOGLE_MAPS_API_KEY is None:
        logger.warning("GOOGLE_MAPS_API_KEY not set, trip distances will rely on UI estimates")
        return NullRouteOracle()
    return GoogleRouteClient(
        api_key=settings.GOOGLE_MAPS_API_KEY.get_secret_value(),
        timeout_seconds=settings.ROUTE_TIMEOUT_SECONDS,
        region_suffix=settings.ADDRESS_REGION_SUFFIX,
    )


def load_configuration(config_path: Path | None) -> AgentConfiguration:
    if config_path is None:
        return AgentConfiguration()
    return load_configuration_file(config_path)


def display_configuration(console: Console, configuration: AgentConfiguration) -> None:
    table = Table(title="Agent configuration", show_header=False)
    for key, value in configuration.model_dump().items():
        table.add_row(key, str(value))
    console.print(table)


async def run_agent(serial: str | None, config_path: Path | None, shadow: bool) -> None:
    device = get_adb_device(host=settings.ADB_HOST, port=settings.ADB_PORT, serial=serial)
    snapshot_provider = AdbSnapshotProvider(
        device,
        target_package=settings.TARGET_PACKAGE,
        poll_interval_seconds=settings.POLL_INTERVAL_SECONDS,
    )

    config_provider: ConfigProvider
    watcher: asyncio.Task | None = None
    if config_path is not None:
        config_provider = YamlConfigProvider(config_path)
        watcher = asyncio.create_task(config_provider.watch(), name="config-watcher")
    else:
        config_provider = StaticConfigProvider()
    if shadow:
        config_provider = ShadowConfigProvider(config_provider)

    route_oracle = build_route_oracle()
    observability = LoggingObservabilityProvider()
    orchestrator = OfferOrchestrator(
        actuator=AdbActuator(device),
        snapshot_provider=snapshot_provider,
        route_oracle=route_oracle,
        config_provider=config_provider,
        observability=observability,
        dialog_settle_delay_seconds=settings.DIALOG_SETTLE_DELAY_SECONDS,
        reveal_settle_delay_seconds=settings.REVEAL_SETTLE_DELAY_SECONDS,
        await_timeout_seconds=settings.AWAIT_TIMEOUT_SECONDS,
    )
    logger.info(f"Configuration: {config_provider.current().describe()}")
    try:
        await orchestrator.run()
    finally:
        if watcher is not None:
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher
        if isinstance(route_oracle, GoogleRouteClient):
            await route_oracle.aclose()
        logger.info(f"Session summary: {observability.summary()}")


@app.command()
def run(
    serial: Annotated[
        str | None,
        typer.Option("--serial", "-s", help="ADB serial of the device to drive."),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="YAML file with the trip filters and pricing rules. Reloaded when it changes.",
        ),
    ] = None,
    shadow: Annotated[
        bool,
        typer.Option("--shadow", help="Compute and log decisions without acting on them."),
    ] = False,
):
    """
    Watch the trip list and handle offers automatically until interrupted.
    """
    set_global_level(settings.LOG_LEVEL)
    config_path = config_path or settings.AGENT_CONFIG_PATH
    try:
        asyncio.run(run_agent(serial=serial, config_path=config_path, shadow=shadow))
    except KeyboardInterrupt:
        logger.info("Interrupted, orchestrator stopped")
    except OfferAgentError as e:
        logger.error(e.message)
        raise typer.Exit(code=1)


@app.command()
def dump(
    serial: Annotated[
        str | None,
        typer.Option("--serial", "-s", help="ADB serial of the device to read."),
    ] = None,
):
    """
    Print the current screen hierarchy as a tree.
    """
    console = Console()
    try:
        device = get_adb_device(host=settings.ADB_HOST, port=settings.ADB_PORT, serial=serial)
    except OfferAgentError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=1)

    snapshot = asyncio.run(AdbSnapshotProvider(device).capture())
    if snapshot is None:
        console.print("[red]Could not read the screen.[/red]")
        raise typer.Exit(code=1)
    with snapshot:
        console.print(dump_tree(snapshot.root))


@app.command(name="decide")
def decide_command(
    price: Annotated[
        float | None,
        typer.Option("--price", "-p", help="Price suggested by the app."),
    ] = None,
    distance: Annotated[
        float | None,
        typer.Option("--distance", "-d", help="Trip distance in km."),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="YAML configuration file."),
    ] = None,
):
    """
    Offline pricing calculator: shows what the agent would do for a trip.
    """
    console = Console()
    try:
        configuration = load_configuration(config_path or settings.AGENT_CONFIG_PATH)
    except OfferAgentError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=1)

    display_configuration(console, configuration)
    decision = decide(
        ExtractedDetailInfo(suggested_price=price, api_trip_distance_km=distance),
        configuration,
    )
    color = {
        DecisionKind.ACCEPT: "green",
        DecisionKind.COUNTER_OFFER: "yellow",
        DecisionKind.DISCARD: "red",
    }[decision.kind]
    console.print(f"[bold {color}]{decision}[/bold {color}] {decision.reason}")


@app.command()
def route(
    origin: Annotated[str, typer.Argument(help="Pickup address.")],
    destination: Annotated[str, typer.Argument(help="Drop-off address.")],
):
    """
    Measure the driving distance between two addresses.
    """
    console = Console()

    async def measure():
        oracle = build_route_oracle()
        try:
            return await oracle.measure(origin, destination)
        finally:
            if isinstance(oracle, GoogleRouteClient):
                await oracle.aclose()

    measurement = asyncio.run(measure())
    if measurement is None:
        console.print("[red]No route found.[/red]")
        raise typer.Exit(code=1)
    console.print(f"{measurement.distance_km:.2f} km, {measurement.duration_min} min")


def cli():
    app()


if __name__ == "__main__":
    cli()
