"""
Bootstrap dataset file.

Layout:
    <powertac-bootstrap-data>
      <config>
        <bootstrap-offset value="24"/>
        <competition .../>
        <plugin-config ...>...</plugin-config>     (zero or more)
      </config>
      <bootstrap>
        customer data, then market data, then weather, in collection order
      </bootstrap>
    </powertac-bootstrap-data>
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import IO, Iterable, Optional, Union

from state.domain import (
    Competition, CustomerBootstrapData, MarketBootstrapData, PluginConfig,
    PowerType, WeatherReport,
)

logger = logging.getLogger(__name__)

ROOT_TAG = "powertac-bootstrap-data"


class BootstrapDatasetError(ValueError):
    """The dataset file is missing, unreadable or not a bootstrap dataset."""


@dataclass
class BootstrapDataset:
    offset: int
    competition: Competition
    plugin_configs: list[PluginConfig] = field(default_factory=list)
    items: list[object] = field(default_factory=list)

    def customer_data(self) -> list[CustomerBootstrapData]:
        return [i for i in self.items if isinstance(i, CustomerBootstrapData)]

    def market_data(self) -> Optional[MarketBootstrapData]:
        for item in self.items:
            if isinstance(item, MarketBootstrapData):
                return item
        return None

    def weather_reports(self) -> list[WeatherReport]:
        return [i for i in self.items if isinstance(i, WeatherReport)]


# ============================================================
# Writing
# ============================================================

def _floats(values: Iterable[float]) -> str:
    return ",".join(repr(float(v)) for v in values)


def competition_to_xml(competition: Competition) -> ET.Element:
    return ET.Element("competition", {
        "name": competition.name,
        "timeslot-duration": str(int(competition.timeslot_duration.total_seconds())),
        "timeslots-open": str(competition.timeslots_open),
        "deactivate-timeslots-ahead": str(competition.deactivate_timeslots_ahead),
        "bootstrap-timeslot-count": str(competition.bootstrap_timeslot_count),
        "bootstrap-discarded-timeslots": str(competition.bootstrap_discarded_timeslots),
    })


def plugin_config_to_xml(pic: PluginConfig) -> ET.Element:
    elem = ET.Element("plugin-config", {"role-name": pic.role_name, "name": pic.name})
    for key, value in pic.configuration.items():
        ET.SubElement(elem, "entry", {"key": key, "value": value})
    return elem


def item_to_xml(item: object) -> ET.Element:
    """Serialize one bootstrap item."""
    if isinstance(item, CustomerBootstrapData):
        elem = ET.Element("customer-bootstrap-data", {
            "customer-name": item.customer_name,
            "power-type": item.power_type.value,
        })
        ET.SubElement(elem, "net-usage").text = _floats(item.net_usage)
        return elem
    if isinstance(item, MarketBootstrapData):
        elem = ET.Element("market-bootstrap-data")
        ET.SubElement(elem, "mwh").text = _floats(item.mwh)
        ET.SubElement(elem, "market-price").text = _floats(item.market_price)
        return elem
    if isinstance(item, WeatherReport):
        return ET.Element("weather-report", {
            "timeslot": str(item.timeslot),
            "temperature": repr(float(item.temperature)),
            "wind-speed": repr(float(item.wind_speed)),
            "wind-direction": repr(float(item.wind_direction)),
            "cloud-cover": repr(float(item.cloud_cover)),
        })
    raise TypeError(f"cannot serialize bootstrap item {type(item).__name__}")


def build_document(items: Iterable[object], competition: Competition,
                   plugin_configs: Iterable[PluginConfig] = ()) -> ET.ElementTree:
    root = ET.Element(ROOT_TAG)
    config = ET.SubElement(root, "config")
    ET.SubElement(config, "bootstrap-offset",
                  {"value": str(competition.bootstrap_discarded_timeslots)})
    config.append(competition_to_xml(competition))
    for pic in plugin_configs:
        config.append(plugin_config_to_xml(pic))

    bootstrap = ET.SubElement(root, "bootstrap")
    for item in items:
        bootstrap.append(item_to_xml(item))
    return ET.ElementTree(root)


def write_bootstrap_dataset(target: Union[str, Path, IO[bytes]], items: Iterable[object],
                            competition: Competition,
                            plugin_configs: Iterable[PluginConfig] = ()):
    """Write the dataset as UTF-8 XML to a path or binary stream."""
    tree = build_document(items, competition, plugin_configs)
    ET.indent(tree)
    tree.write(target, encoding="UTF-8", xml_declaration=True)


def save_bootstrap_data(broker, competition: Competition,
                        plugin_configs: Iterable[PluginConfig],
                        target: Union[str, Path, IO[bytes]]) -> list[object]:
    """Collect the broker's bootstrap data and write it out."""
    items = broker.collect_bootstrap_data(competition.bootstrap_timeslot_count)
    write_bootstrap_dataset(target, items, competition, plugin_configs)
    logger.info(f"wrote {len(items)} bootstrap items")
    return items


# ============================================================
# Reading
# ============================================================

def _parse_floats(text: Optional[str]) -> list[float]:
    if not text or not text.strip():
        return []
    return [float(v) for v in text.split(",")]


def competition_from_xml(elem: ET.Element) -> Competition:
    defaults = Competition()
    return Competition(
        name=elem.get("name", defaults.name),
        timeslot_duration=timedelta(seconds=int(elem.get(
            "timeslot-duration", defaults.timeslot_duration.total_seconds()))),
        timeslots_open=int(elem.get("timeslots-open", defaults.timeslots_open)),
        deactivate_timeslots_ahead=int(elem.get(
            "deactivate-timeslots-ahead", defaults.deactivate_timeslots_ahead)),
        bootstrap_timeslot_count=int(elem.get(
            "bootstrap-timeslot-count", defaults.bootstrap_timeslot_count)),
        bootstrap_discarded_timeslots=int(elem.get(
            "bootstrap-discarded-timeslots", defaults.bootstrap_discarded_timeslots)),
    )


def plugin_config_from_xml(elem: ET.Element) -> PluginConfig:
    pic = PluginConfig(role_name=elem.get("role-name", ""), name=elem.get("name", ""))
    for entry in elem.findall("entry"):
        pic.add_configuration(entry.get("key"), entry.get("value", ""))
    return pic


def item_from_xml(elem: ET.Element) -> Optional[object]:
    """Parse one bootstrap item; unknown elements give None."""
    if elem.tag == "customer-bootstrap-data":
        return CustomerBootstrapData(
            customer_name=elem.get("customer-name"),
            power_type=PowerType(elem.get("power-type")),
            net_usage=_parse_floats(elem.findtext("net-usage")),
        )
    if elem.tag == "market-bootstrap-data":
        return MarketBootstrapData(
            mwh=_parse_floats(elem.findtext("mwh")),
            market_price=_parse_floats(elem.findtext("market-price")),
        )
    if elem.tag == "weather-report":
        return WeatherReport(
            timeslot=int(elem.get("timeslot")),
            temperature=float(elem.get("temperature")),
            wind_speed=float(elem.get("wind-speed")),
            wind_direction=float(elem.get("wind-direction")),
            cloud_cover=float(elem.get("cloud-cover")),
        )
    return None


def read_bootstrap_dataset(source: Union[str, Path, IO[bytes]]) -> BootstrapDataset:
    """Parse a dataset written by write_bootstrap_dataset."""
    try:
        root = ET.parse(source).getroot()
    except (ET.ParseError, OSError) as e:
        raise BootstrapDatasetError(f"cannot read bootstrap dataset: {e}") from e
    if root.tag != ROOT_TAG:
        raise BootstrapDatasetError(f"unexpected root element <{root.tag}>")

    offset_elem = root.find("config/bootstrap-offset")
    offset = int(offset_elem.get("value", 0)) if offset_elem is not None else 0
    logger.info(f"offset: {offset} timeslots")

    comp_elem = root.find("config/competition")
    competition = competition_from_xml(comp_elem) if comp_elem is not None else Competition()
    plugin_configs = [plugin_config_from_xml(e) for e in root.findall("config/plugin-config")]

    nodes = root.findall("bootstrap/*")
    logger.info(f"Found {len(nodes)} bootstrap nodes")
    items = []
    for node in nodes:
        try:
            item = item_from_xml(node)
        except (TypeError, ValueError) as e:
            raise BootstrapDatasetError(f"bad <{node.tag}> element: {e}") from e
        if item is None:
            logger.warning(f"skipping unknown bootstrap element <{node.tag}>")
            continue
        items.append(item)
    return BootstrapDataset(offset, competition, plugin_configs, items)
