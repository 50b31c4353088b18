from collections.abc import Callable
from unittest.mock import DEFAULT, AsyncMock

import pytest

from kairos.offer_agent.clients.route_client import RouteMeasurement
from kairos.offer_agent.config import AgentConfiguration, StaticConfigProvider
from kairos.offer_agent.utils.ui_hierarchy import Snapshot

ANDROID_WIDGET = "android.widget."


def make_node(
    widget: str = "TextView",
    text: str | None = None,
    desc: str | None = None,
    resource_id: str | None = None,
    clickable: bool = False,
    bounds: tuple[int, int, int, int] = (0, 0, 100, 50),
    scrollable: bool = False,
    children: list[dict] | None = None,
    package: str | None = "sinet.startup.inDriver",
) -> dict:
    """Builds one node of the nested rich hierarchy format. `bounds` is (left, top, right, bottom)."""
    left, top, right, bottom = bounds
    attributes = {
        "class": widget if "." in widget else ANDROID_WIDGET + widget,
        "text": text or "",
        "content-desc": desc or "",
        "resource-id": resource_id or "",
        "package": package,
        "clickable": "true" if clickable else "false",
        "scrollable": "true" if scrollable else "false",
        "enabled": "true",
        "visible-to-user": "true",
        "bounds": f"[{left},{top}][{right},{bottom}]",
    }
    return {"attributes": attributes, "children": children or []}


@pytest.fixture
def node() -> Callable[..., dict]:
    """Factory for rich hierarchy nodes."""
    return make_node


@pytest.fixture
def build_snapshot() -> Callable[..., Snapshot]:
    """Builds a Snapshot whose root is a FrameLayout holding the given nodes."""

    def _build(*children: dict) -> Snapshot:
        root = make_node("FrameLayout", bounds=(0, 0, 1080, 2400), children=list(children))
        return Snapshot.from_rich_hierarchy(root)

    return _build


def make_listing(
    pickup: str | None = "~1.2 km",
    origin: str | None = "Calle 80 # 10-20",
    destination: str | None = "Carrera 7 # 45-10",
    estimate: str | None = "28 min 12 km",
    price: str | None = "COL$25,000",
    rating: tuple[str, str] | None = ("4.85", "(120)"),
    top: int = 300,
) -> dict:
    """One clickable trip entry of the list screen."""
    labels = [pickup, price, origin, destination, estimate]
    children = [make_node(text=label, bounds=(0, top, 1080, top + 40)) for label in labels if label]
    if rating:
        rating_row = make_node(
            "ViewGroup",
            bounds=(0, top + 40, 300, top + 80),
            children=[
                make_node(text=rating[0], bounds=(0, top + 40, 100, top + 80)),
                make_node(text=rating[1], bounds=(100, top + 40, 200, top + 80)),
            ],
        )
        children.append(rating_row)
    return make_node("ViewGroup", clickable=True, bounds=(0, top, 1080, top + 200), children=children)


def make_list_screen(*listings: dict) -> Snapshot:
    recycler = make_node(
        "androidx.recyclerview.widget.RecyclerView",
        bounds=(0, 200, 1080, 2400),
        scrollable=True,
        children=list(listings),
    )
    root = make_node("FrameLayout", bounds=(0, 0, 1080, 2400), children=[recycler])
    return Snapshot.from_rich_hierarchy(root)


def make_detail_screen(
    price: str | None = "COL$25,000",
    estimate: str | None = "28 min 12 km",
    origin: str | None = "Calle 80 # 10-20",
    destination: str | None = "Carrera 7 # 45-10",
    with_edit_button: bool = True,
    with_accept_button: bool = True,
    extra: list[dict] | None = None,
) -> Snapshot:
    """Trip detail screen: addresses, price, suggestion row, edit and accept buttons."""
    children = [make_node(text="Ofrece tu tarifa", bounds=(0, 100, 1080, 160))]
    if origin:
        children.append(
            make_node(
                text=origin,
                resource_id="sinet.startup.inDriver:id/info_textview_pickup",
                bounds=(0, 200, 1080, 260),
            )
        )
    if destination:
        children.append(
            make_node(
                text=destination,
                resource_id="sinet.startup.inDriver:id/info_textview_destination",
                bounds=(0, 260, 1080, 320),
            )
        )
    if estimate:
        children.append(make_node(text=estimate, bounds=(0, 320, 1080, 380)))
    if price:
        children.append(make_node(text=price, bounds=(0, 400, 1080, 480)))
    children.append(
        make_node(
            "HorizontalScrollView",
            bounds=(0, 1500, 900, 1600),
            scrollable=True,
            children=[
                make_node("Button", text="COL$26,000", clickable=True, bounds=(0, 1500, 300, 1600)),
                make_node("Button", text="COL$27,500", clickable=True, bounds=(300, 1500, 600, 1600)),
            ],
        )
    )
    if with_edit_button:
        children.append(make_node("Button", clickable=True, bounds=(0, 1700, 200, 1800)))
    if with_accept_button:
        children.append(
            make_node(
                "Button",
                text=f"Aceptar por {price}" if price else "Aceptar por COL$",
                clickable=True,
                bounds=(0, 1900, 1080, 2000),
            )
        )
    children.extend(extra or [])
    root = make_node("FrameLayout", bounds=(0, 0, 1080, 2400), children=children)
    return Snapshot.from_rich_hierarchy(root)


def make_offer_dialog(
    current_value: str = "25000",
    with_field: bool = True,
    with_submit: bool = True,
    with_close: bool = True,
) -> Snapshot:
    children = [make_node(text="Tu oferta", bounds=(0, 1200, 1080, 1260))]
    if with_close:
        children.append(make_node("Button", desc="Cerrar", clickable=True, bounds=(980, 1200, 1080, 1260)))
    if with_field:
        children.append(make_node("EditText", text=current_value, clickable=True, bounds=(0, 1300, 1080, 1400)))
    if with_submit:
        children.append(make_node("Button", text="Oferta", clickable=True, bounds=(0, 1500, 1080, 1600)))
    root = make_node("FrameLayout", bounds=(0, 0, 1080, 2400), children=children)
    return Snapshot.from_rich_hierarchy(root)


@pytest.fixture
def listing() -> Callable[..., dict]:
    return make_listing


@pytest.fixture
def list_screen() -> Callable[..., Snapshot]:
    return make_list_screen


@pytest.fixture
def detail_screen() -> Callable[..., Snapshot]:
    return make_detail_screen


@pytest.fixture
def offer_dialog() -> Callable[..., Snapshot]:
    return make_offer_dialog


@pytest.fixture
def actuator() -> AsyncMock:
    """Actuator double. Every action succeeds unless a test overrides the return values.

    `clicks` records `(text, widget)` of each clicked node at click time, since the
    node handles go stale once the orchestrator releases the snapshot.
    """
    fake = AsyncMock()
    fake.clicks = []

    def record_click(node):
        fake.clicks.append((node.text, node.widget))
        return DEFAULT

    fake.click.side_effect = record_click
    fake.click.return_value = True
    fake.set_text.return_value = True
    fake.dispatch_tap_gesture.return_value = None
    return fake


@pytest.fixture
def route_oracle() -> AsyncMock:
    """Route oracle double answering 12 km / 28 min for any pair of addresses."""
    fake = AsyncMock()
    fake.measure.return_value = RouteMeasurement(distance_km=12.0, duration_min=28)
    return fake


@pytest.fixture
def configuration() -> AgentConfiguration:
    return AgentConfiguration(
        max_pickup_distance_km=5.0,
        max_trip_distance_km=15.0,
        price_per_km=2500,
        minimum_profit=10000,
    )


@pytest.fixture
def config_provider(configuration: AgentConfiguration) -> StaticConfigProvider:
    return StaticConfigProvider(configuration)
