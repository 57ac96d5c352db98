"""
Connection and command engine for a single OSSM device.

OssmController owns the link lifecycle, pushes every protocol exchange
through a SerialTaskQueue, reconciles the status stream against the
commands it issues, and sequences multi-field motion updates.
"""

import asyncio
import logging
from typing import Any, Callable, Iterable, Optional, Union

from bleak import BleakScanner

from .codec import (
    check_response,
    compensate,
    decode_text,
    encode_knob_config,
    encode_text,
    go_command,
    parse_knob_config,
    parse_pattern_list,
    parse_state,
    set_command,
)
from .config import ClientConfig, load_cached_address, save_cached_address
from .core import PRIMARY_SERVICE_UUID, REQUIRED_CHARACTERISTICS
from .errors import (
    AbortedError,
    DataError,
    DeviceNotFoundError,
    InputValidationError,
    InvalidStateError,
    NotReadyError,
    OssmError,
    OssmTimeoutError,
)
from .events import EventCallback, EventHub
from .models import DeviceState, EventType, Field, Page, PatternDescriptor, Status
from .motion import StrokePattern, plan_position_move, plan_write_order, validate_level
from .navigation import find_route
from .reconciler import StatusReconciler
from .task_queue import CancelSignal, SerialTaskQueue
from .transport import BleakTransport, Transport

logger = logging.getLogger(__name__)


class OssmController:
    """Manages connection to, and control of, one OSSM device."""

    def __init__(
        self,
        transport: Transport,
        config: Optional[ClientConfig] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        """Initialize controller around a transport; nothing is connected yet.

        Args:
            transport: Link to the device
            config: Timing configuration (defaults to ClientConfig())
            log: Logger to report through (defaults to this module's logger)
        """
        self._transport = transport
        self._config = config or ClientConfig()
        self._logger = log or logger
        self._queue = SerialTaskQueue()
        self._events = EventHub(self._logger)
        self._reconciler = StatusReconciler()
        self._characteristics: dict[str, Any] = {}
        self._pattern_cache: Optional[list[PatternDescriptor]] = None
        self._auto_reconnect = False
        self._ready = False
        self._supervisor: Optional[asyncio.Task] = None
        self._last_position: Optional[int] = None
        # CONNECTED fired and not yet matched by DISCONNECTED
        self._announced = False

        transport.on_unsolicited_disconnect(self._on_unsolicited_disconnect)

    @classmethod
    async def pair(
        cls,
        address: Optional[str] = None,
        config: Optional[ClientConfig] = None,
        log: Optional[logging.Logger] = None,
    ) -> "OssmController":
        """Locate a device and build a controller for it.

        Tries ``address`` (or the cached address) first, then falls back to
        scanning. The address found is cached for next time.

        Raises:
            DeviceNotFoundError: Nothing answered
        """
        config = config or ClientConfig()
        target = address or load_cached_address()
        device = None
        if target:
            logger.info(f"Trying address: {target}")
            device = await BleakScanner.find_device_by_address(
                target, timeout=config.scan_timeout
            )
            if device is None:
                logger.warning(f"Device {target} not found, scanning...")
        if device is None:
            device = await BleakTransport.discover(timeout=config.scan_timeout)
        if device is None:
            raise DeviceNotFoundError("No OSSM device found")

        save_cached_address(device.address)
        return cls(BleakTransport(device), config=config, log=log)

    # ========== Properties ==========

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def is_connected(self) -> bool:
        return self._transport.is_connected

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def queue(self) -> SerialTaskQueue:
        return self._queue

    @property
    def pending_targets(self) -> dict[str, object]:
        return self._reconciler.pending

    def get_cached_state(self) -> Optional[DeviceState]:
        """Last published state, or None before the first status push."""
        return self._reconciler.state

    def get_cached_pattern_list(self) -> Optional[list[PatternDescriptor]]:
        """Last fetched pattern list, or None if never fetched."""
        if self._pattern_cache is None:
            return None
        return list(self._pattern_cache)

    # ========== Events ==========

    def add_event_listener(self, event_type: EventType, callback: EventCallback) -> None:
        """Register ``callback`` for ``event_type``.

        CONNECTED and DISCONNECTED pass None; STATE_CHANGED passes the new
        DeviceState. Coroutine callbacks are scheduled, never awaited.
        """
        self._events.add(event_type, callback)

    def remove_event_listener(self, event_type: EventType, callback: EventCallback) -> None:
        self._events.remove(event_type, callback)

    # ========== Lifecycle ==========

    def begin(self) -> None:
        """Start automatic connection management in the background.

        Call wait_for_ready() afterwards before sending commands.
        """
        self._auto_reconnect = True
        self._start_supervisor(safety_stop=False)

    async def connect(self) -> None:
        """Open the link and discover the device; no-op when already ready."""
        if await self._open_link():
            self._announce_connected()

    async def end(self) -> None:
        """Stop connection management, stop the device and disconnect."""
        self._auto_reconnect = False
        supervisor, self._supervisor = self._supervisor, None
        if supervisor is not None and not supervisor.done():
            supervisor.cancel()
            try:
                await supervisor
            except asyncio.CancelledError:
                pass

        self._queue.clear_queue("Controller ending")
        was_connected = self._transport.is_connected
        if self._ready:
            try:
                await self.stop()
            except OssmError as e:
                self._logger.error(f"Stop on end failed: {e}")
        self._ready = False

        if self._transport.is_connected:
            try:
                self._logger.info("Disconnecting...")
                await self._transport.disconnect()
            except Exception as e:
                self._logger.error(f"Disconnect failed: {e}")
        await self._queue.close()

        if was_connected:
            self._logger.info("Disconnected")
        self._announce_disconnected()

    async def wait_for_ready(self, timeout: Optional[float] = None) -> None:
        """Wait until the controller accepts commands.

        Raises:
            OssmTimeoutError: Not ready within ``timeout`` seconds
        """
        await self._poll(
            lambda: self._ready, timeout, "Timeout waiting for OSSM to be ready"
        )

    async def get_state(self, timeout: Optional[float] = None) -> DeviceState:
        """Current state, waiting for the first status push if needed.

        Raises:
            OssmTimeoutError: No state within ``timeout`` seconds
        """
        await self._poll(
            lambda: self._reconciler.state is not None,
            timeout,
            "Timeout waiting for OSSM state",
        )
        return self._reconciler.state  # type: ignore[return-value]

    async def wait_for_status(
        self, status: Union[Status, str], timeout: Optional[float] = None
    ) -> DeviceState:
        """Wait until the device reports ``status``.

        Raises:
            OssmTimeoutError: Status not reached within ``timeout`` seconds
        """
        target = status.value if isinstance(status, Status) else status
        await self._poll(
            lambda: self._reconciler.state is not None
            and self._reconciler.state.status == target,
            timeout,
            f"Timeout waiting for status {target}",
        )
        return self._reconciler.state  # type: ignore[return-value]

    async def __aenter__(self) -> "OssmController":
        self.begin()
        await self.wait_for_ready()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.end()

    def _start_supervisor(self, safety_stop: bool) -> None:
        if self._supervisor is not None and not self._supervisor.done():
            return
        self._supervisor = asyncio.get_running_loop().create_task(
            self._supervise(safety_stop)
        )

    async def _supervise(self, safety_stop: bool) -> None:
        """Retry connecting with fixed backoff until connected or disabled.

        The outage is measured from the last status seen before the link
        dropped, so pushes arriving on the new subscription do not hide it.
        If the link drops again before the device is confirmed stopped and
        usable, the loop keeps going.
        """
        attempt = 0
        last_seen = self._reconciler.last_update
        needs_stop = False
        while self._auto_reconnect:
            try:
                opened = await self._open_link()
            except Exception as e:
                attempt += 1
                self._logger.warning(f"Connection attempt {attempt} failed: {e}")
                await asyncio.sleep(self._config.reconnect_backoff)
                continue

            if opened and safety_stop and not needs_stop:
                silence = self._reconciler.elapsed_since(last_seen)
                needs_stop = silence is None or silence > self._config.safety_stop_threshold
                if needs_stop:
                    self._logger.warning(
                        "No status received for too long while disconnected, stopping"
                    )
            if needs_stop:
                try:
                    await self.stop()
                    needs_stop = False
                except Exception as e:
                    self._logger.error(f"Safety stop failed: {e}")

            if self._ready and self._transport.is_connected:
                if opened:
                    self._announce_connected()
                return

            self._logger.warning("Link lost while resuming, reconnecting...")
            safety_stop = True
            await asyncio.sleep(self._config.reconnect_backoff)

    def _announce_connected(self) -> None:
        self._announced = True
        self._events.fire(EventType.CONNECTED)

    def _announce_disconnected(self) -> None:
        # Only a link that was announced as connected is announced as lost
        if self._announced:
            self._announced = False
            self._events.fire(EventType.DISCONNECTED)

    async def _open_link(self) -> bool:
        if self._ready and self._transport.is_connected:
            return False

        self._queue.clear_queue("Connection reset")
        await self._queue.enqueue(self._connect_unit)
        self._ready = True
        self._logger.info("Connected")
        return True

    async def _connect_unit(self, signal: CancelSignal) -> None:
        if not self._transport.is_connected:
            await self._transport.connect()

        # The device has been seen dropping the link mid-discovery right after connecting
        await asyncio.sleep(self._config.connect_settle_delay)
        signal.raise_if_cancelled()

        characteristics = {}
        for name, char_uuid in REQUIRED_CHARACTERISTICS.items():
            characteristics[name] = self._transport.get_characteristic(
                PRIMARY_SERVICE_UUID, char_uuid
            )
        self._characteristics = characteristics

        await self._transport.subscribe(
            characteristics["current_state"], self._on_status_notify
        )

    def _on_unsolicited_disconnect(self) -> None:
        self._ready = False
        self._logger.warning("Disconnected")
        self._announce_disconnected()
        if self._auto_reconnect:
            self._logger.info("Reconnecting...")
            self._start_supervisor(safety_stop=True)

    def _on_status_notify(self, data: bytes) -> None:
        """Handle a status push; runs outside the task queue."""
        try:
            state = parse_state(data)
        except DataError as e:
            self._logger.warning(f"Ignoring status notification: {e}")
            return

        published = self._reconciler.reconcile(state)
        if published is not None:
            self._logger.debug(f"State changed: {published}")
            self._events.fire(EventType.STATE_CHANGED, published)

    async def _poll(
        self, predicate: Callable[[], bool], timeout: Optional[float], message: str
    ) -> None:
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while not predicate():
            if deadline is not None and loop.time() >= deadline:
                raise OssmTimeoutError(message)
            await asyncio.sleep(self._config.poll_interval)

    def _require_ready(self) -> None:
        if not self._ready:
            raise NotReadyError("OSSM not ready")

    # ========== Protocol exchanges ==========

    async def send_command(self, text: str, speedup: bool = False) -> None:
        """Write a command and check the device's echo.

        Args:
            text: Command such as ``set:speed:50``
            speedup: Skip the read-back; only for motion updates

        Raises:
            NotReadyError: Link not established
            OperationFailedError: Device answered ``fail:<text>``
            UnexpectedResponseError: Any other echo
            AbortedError: Queue cleared while waiting
            OssmTimeoutError: Exchange overran command_timeout
        """
        self._require_ready()
        command_char = self._characteristics["command"]

        async def exchange(signal: CancelSignal) -> Optional[str]:
            await self._transport.write_value(command_char, encode_text(text))
            if speedup:
                return None
            await asyncio.sleep(self._config.command_settle_delay)
            signal.raise_if_cancelled()
            return decode_text(await self._transport.read_value(command_char))

        self._logger.debug(f"Sending {text}")
        response = await self._queue.enqueue(exchange, timeout=self._config.command_timeout)
        if not speedup:
            check_response(text, response)

    async def _write_field(
        self, field: Field, value: int, speedup: bool = False, force: bool = False
    ) -> None:
        self._require_ready()
        state = self._reconciler.state
        if not force and state is not None and state.get(field) == value:
            return
        value = int(value)
        with self._reconciler.pending_targets({field: value}):
            await self.send_command(
                set_command(field, compensate(field, value)), speedup=speedup
            )

    async def set_speed(self, speed: int) -> None:
        """Set stroke speed percentage (0-100)."""
        validate_level("Speed", speed)
        await self._write_field(Field.SPEED, speed)

    async def set_stroke(self, stroke: int) -> None:
        """Set stroke length percentage (0-100)."""
        validate_level("Stroke", stroke)
        await self._write_field(Field.STROKE, stroke)

    async def set_depth(self, depth: int) -> None:
        """Set penetration depth percentage (0-100)."""
        validate_level("Depth", depth)
        await self._write_field(Field.DEPTH, depth)

    async def set_sensation(self, sensation: int) -> None:
        """Set sensation intensity percentage (0-100)."""
        validate_level("Sensation", sensation)
        await self._write_field(Field.SENSATION, sensation)

    async def set_pattern(self, pattern_id: int) -> None:
        """Select a stroke pattern by index (see get_pattern_list())."""
        await self._validate_pattern(pattern_id)
        await self._write_field(Field.PATTERN, pattern_id)

    async def _validate_pattern(self, pattern_id: object) -> None:
        if isinstance(pattern_id, bool) or not isinstance(pattern_id, int) or pattern_id < 0:
            raise InputValidationError(
                f"Pattern must be a non-negative integer, got {pattern_id!r}"
            )
        self._require_ready()
        patterns = self._pattern_cache
        if patterns is None:
            patterns = await self.get_pattern_list()
        if pattern_id not in {p.idx for p in patterns}:
            raise InputValidationError(f"Unknown pattern {pattern_id}")

    async def set_speed_knob_config(self, knob_as_limit: bool) -> None:
        """Configure whether the physical speed knob caps BLE speed commands.

        When True, ``set:speed:80`` with the knob at 50% runs at 40%; when
        False the commanded speed is used directly.

        Raises:
            DataError: The device did not confirm the new setting
        """
        if not isinstance(knob_as_limit, bool):
            raise InputValidationError("Speed knob configuration must be a bool")
        self._require_ready()
        knob_char = self._characteristics["speed_knob_configuration"]

        async def exchange(signal: CancelSignal) -> bool:
            await self._transport.write_value(knob_char, encode_knob_config(knob_as_limit))
            await asyncio.sleep(self._config.command_settle_delay)
            signal.raise_if_cancelled()
            return parse_knob_config(await self._transport.read_value(knob_char))

        confirmed = await self._queue.enqueue(exchange, timeout=self._config.command_timeout)
        if confirmed != knob_as_limit:
            raise DataError("Failed to set speed knob configuration")

    async def get_speed_knob_config(self) -> bool:
        """Whether the speed knob caps BLE speed commands."""
        self._require_ready()
        knob_char = self._characteristics["speed_knob_configuration"]

        async def exchange(signal: CancelSignal) -> bool:
            return parse_knob_config(await self._transport.read_value(knob_char))

        return await self._queue.enqueue(exchange, timeout=self._config.command_timeout)

    async def get_pattern_list(self) -> list[PatternDescriptor]:
        """Fetch every pattern with its description and cache the result.

        Raises:
            DataError: The list or a description could not be read
        """
        self._require_ready()
        list_char = self._characteristics["pattern_list"]
        description_char = self._characteristics["pattern_description"]

        async def read_list(signal: CancelSignal) -> list[tuple[str, int]]:
            return parse_pattern_list(await self._transport.read_value(list_char))

        raw_patterns = await self._queue.enqueue(read_list, timeout=self._config.command_timeout)

        patterns = []
        for name, idx in raw_patterns:

            async def read_description(signal: CancelSignal, idx: int = idx) -> str:
                await self._transport.write_value(description_char, encode_text(str(idx)))
                await asyncio.sleep(self._config.command_settle_delay)
                signal.raise_if_cancelled()
                return decode_text(await self._transport.read_value(description_char))

            description = await self._queue.enqueue(
                read_description, timeout=self._config.command_timeout
            )
            if not description:
                raise DataError(f"Failed to get description for pattern ID {idx}")
            patterns.append(PatternDescriptor(name=name, idx=idx, description=description))

        self._pattern_cache = patterns
        return list(patterns)

    # ========== Navigation ==========

    async def navigate_to(self, page: Union[Page, str]) -> None:
        """Move the device to ``page``, via intermediate pages if needed.

        Raises:
            InputValidationError: Unknown page
            InvalidStateError: Current status is outside the navigable pages
            UnreachableError: No route to ``page``
        """
        try:
            page = Page(page)
        except ValueError:
            raise InputValidationError(f"Unknown page {page!r}") from None
        self._require_ready()

        state = await self.get_state()
        current = state.page
        if current == page:
            return
        if current is None:
            raise InvalidStateError(f"Cannot navigate from status {state.status}")

        route = find_route(current, page)
        self._logger.debug(f"Navigating {current.value} -> {page.value} via {route}")
        for hop_number, hop in enumerate(route, start=1):
            await self.send_command(go_command(hop))
            if hop_number < len(route):
                await self._wait_for_page(hop)

    async def _wait_for_page(self, page: Page) -> None:
        await self._poll(
            lambda: self._reconciler.state is not None
            and self._reconciler.state.page == page,
            self._config.navigation_hop_timeout,
            f"Timeout waiting for page {page.value}",
        )

    # ========== Motion ==========

    async def batch_set(self, updates: Iterable[tuple[Union[Field, str], int]]) -> None:
        """Write several fields in the given order.

        Pending targets for every field that changes are registered before
        the first write, so no intermediate state is published.

        Raises:
            InputValidationError: A field appears twice or a value is invalid
        """
        batch: list[tuple[Field, int]] = []
        seen: set[Field] = set()
        for name, value in updates:
            try:
                field = Field(name)
            except ValueError:
                raise InputValidationError(f"Unknown field {name!r}") from None
            if field in seen:
                raise InputValidationError(f"Field {field.value} appears more than once in batch")
            seen.add(field)
            if field is not Field.PATTERN:
                validate_level(field.value.capitalize(), value)
            batch.append((field, value))

        self._require_ready()
        for field, value in batch:
            if field is Field.PATTERN:
                await self._validate_pattern(value)

        state = self._reconciler.state
        targets = {
            field: value
            for field, value in batch
            if state is None or state.get(field) != value
        }
        with self._reconciler.pending_targets(targets):
            for field, value in batch:
                await self._write_field(field, value)

    async def _require_page(self, page: Page) -> DeviceState:
        state = await self.get_state()
        if state.page != page:
            raise InvalidStateError(
                f"OSSM must be on the {page.value} page, currently {state.status}"
            )
        return state

    async def run_pattern(self, pattern: StrokePattern) -> None:
        """Apply a stroke engine pattern with jerk-minimizing write order.

        Raises:
            InputValidationError: Pattern parameters out of range
            InvalidStateError: Device is not on the stroke engine page
        """
        play = pattern.to_play_data()
        self._require_ready()
        state = await self._require_page(Page.STROKE_ENGINE)

        order = plan_write_order(state, play)
        self._logger.debug(f"Running {play} in order {[f.value for f in order]}")
        await self.batch_set([(field, play.get(field)) for field in order])
        self._last_position = None

    async def move_to_position(self, position: int, speed: int) -> None:
        """Move the actuator to an absolute position and hold it there.

        Args:
            position: Target position percentage (0-100)
            speed: Speed percentage to travel at (0-100)

        Raises:
            InvalidStateError: Device is not on the stroke engine page
        """
        validate_level("Position", position)
        validate_level("Speed", speed)
        self._require_ready()
        state = await self._require_page(Page.STROKE_ENGINE)

        plan = plan_position_move(state, self._last_position, position, speed)
        self._logger.debug(f"Moving to {position} at {speed} ({plan.strategy})")
        for field, value in plan.steps:
            await self._write_field(field, value, speedup=plan.speedup, force=True)
        self._last_position = position

    async def stop(self) -> None:
        """Emergency stop: drop queued work and set speed to 0 immediately."""
        self._require_ready()
        self._queue.clear_queue(AbortedError("Emergency stop"))
        self._logger.info("Stopping")
        with self._reconciler.pending_targets({Field.SPEED: 0}):
            await self.send_command(set_command(Field.SPEED, 0))
