import configparser
import datetime as dt
import logging
from typing import Any, TypeGuard, cast

from sdbus import (
    DbusInterfaceCommonAsync,
    DbusObjectManagerInterfaceAsync,
    dbus_method_async,
)

from .ical import parse_ical_events
from .models import CalendarEvent, CalendarSchema

logger = logging.getLogger(__name__)

EXPOSED_CALENDAR_URI = "org.gnome.evolution.dataserver.Source.Calendar"
EVOLUTION_DS_SOURCE_URI = "org.gnome.evolution.dataserver.Source"


def is_sdbus_variant(val: Any) -> TypeGuard[tuple[str, Any]]:
    # sdbus might return variants as tuples (signature, value) if not auto-unwrapped
    if not isinstance(val, tuple):
        return False

    v = cast(tuple[Any, ...], val)
    return len(v) == 2 and isinstance(v[0], str)


def time_range_query(start: dt.datetime, end: dt.datetime) -> str:
    """EDS s-expression selecting objects that occur in [start, end)."""
    # EDS sexp expects simple ISO usually
    start_str = start.astimezone(dt.UTC).strftime("%Y%m%dT%H%M%SZ")
    end_str = end.astimezone(dt.UTC).strftime("%Y%m%dT%H%M%SZ")
    return f'(occur-in-time-range? (make-time "{start_str}") (make-time "{end_str}"))'


class CalendarFactoryInterface(
    DbusInterfaceCommonAsync,
    interface_name="org.gnome.evolution.dataserver.CalendarFactory",
):
    """
    org.gnome.evolution.dataserver.CalendarFactory interface.
    Used to open a calendar using its source UID.
    """

    @dbus_method_async(input_signature="s", result_signature="ss", method_name="OpenCalendar")
    async def open_calendar(self, source_uid: str) -> tuple[str, str]:
        """Returns (object_path, bus_name)."""
        ...


class CalendarInterface(DbusInterfaceCommonAsync, interface_name="org.gnome.evolution.dataserver.Calendar"):
    """
    org.gnome.evolution.dataserver.Calendar interface.
    Represents an open calendar instance.
    """

    @dbus_method_async(input_signature="s", result_signature="as", method_name="GetObjectList")
    async def get_object_list(self, query: str) -> list[str]: ...


class EDSCalendarFetcher:
    """Reads calendars from Evolution Data Server over the session bus."""

    def __init__(self):
        # socket connection is handled implicitly by sdbus
        pass

    async def _init_connection(self):
        # Create interfaces on demand using new_proxy factory
        self.registry = DbusObjectManagerInterfaceAsync.new_proxy(
            "org.gnome.evolution.dataserver.Sources5",
            "/org/gnome/evolution/dataserver/SourceManager",
        )
        self.factory = CalendarFactoryInterface.new_proxy(
            "org.gnome.evolution.dataserver.Calendar8",
            "/org/gnome/evolution/dataserver/CalendarFactory",
        )

    def _unwrap(self, val: tuple[str, Any] | Any) -> Any:
        if is_sdbus_variant(val):
            return val[1]
        return val

    async def get_calendars(self) -> list[CalendarSchema]:
        """Finds all calendar sources in Evolution that are enabled."""

        if not hasattr(self, "registry"):
            await self._init_connection()

        objects = await self.registry.get_managed_objects()
        calendars: list[CalendarSchema] = []

        for path, interfaces in objects.items():
            source_iface = interfaces.get(EVOLUTION_DS_SOURCE_URI, {})

            # Check for explicitly exposed Calendar interface first
            is_calendar = EXPOSED_CALENDAR_URI in interfaces

            # Fallback/Primary: Parse the 'Data' property which contains the raw key-file content
            data_raw = self._unwrap(source_iface.get("Data", ""))

            # Try to get UID from interface properties first (most reliable)
            uid = self._unwrap(source_iface.get("UID", source_iface.get("Uid", "")))

            name = "Unknown"
            color = "#000000"
            icon = None
            enabled = True

            if data_raw:
                try:
                    config = configparser.ConfigParser(allow_no_value=True, interpolation=None)
                    config.read_string(data_raw)

                    if config.has_section("Calendar"):
                        is_calendar = True
                        if config.has_option("Calendar", "Color"):
                            color = config.get("Calendar", "Color")

                    if config.has_section("Data Source"):
                        if config.has_option("Data Source", "DisplayName"):
                            name = config.get("Data Source", "DisplayName")
                        if config.has_option("Data Source", "Enabled"):
                            enabled = config.getboolean("Data Source", "Enabled")
                        if config.has_option("Data Source", "Parent"):
                            # Provider account, e.g. "google-stub" or "ews-..."
                            icon = config.get("Data Source", "Parent") or None
                        # If we didn't get UID from interface, try config
                        if not uid and config.has_option("Data Source", "Uid"):
                            uid = config.get("Data Source", "Uid")

                except configparser.Error as parse_err:
                    logger.warning("Error parsing source data for %s: %s", path, parse_err)

            # Last resort fallback to path
            if not uid:
                uid = path.split("/")[-1]

            if is_calendar and enabled:
                calendars.append(CalendarSchema(id=uid, name=name, color=color, enabled=True, icon=icon))

        return calendars

    async def fetch_events(
        self, calendar: CalendarSchema, start: dt.datetime, end: dt.datetime
    ) -> list[CalendarEvent]:
        """
        Query one calendar for events overlapping [start, end).

        Transport errors propagate so the caller can isolate this calendar;
        an unparsable object is logged and skipped.
        """
        if not hasattr(self, "factory"):
            await self._init_connection()

        # OpenCalendar returns (object_path, bus_name)
        cal_path, bus_name = await self.factory.open_calendar(calendar.id)
        cal_proxy = CalendarInterface.new_proxy(bus_name, cal_path)
        ical_strings = await cal_proxy.get_object_list(time_range_query(start, end))

        events: list[CalendarEvent] = []
        for ical_data in ical_strings:
            try:
                events.extend(parse_ical_events(ical_data, calendar, start, end))
            except (ValueError, KeyError, AttributeError) as parse_err:
                logger.warning("Error parsing ical from %s: %s", calendar.id, parse_err)

        logger.debug("Fetched %d events from calendar %s", len(events), calendar.name)
        return events
