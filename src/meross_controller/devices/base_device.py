"""Device base class: write pipeline, poll/reconcile loop and push entry point."""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable, Coroutine, Mapping
from typing import TYPE_CHECKING, Any, ClassVar

from meross_controller import metrics
from meross_controller.command_queue import CommandQueue
from meross_controller.const import (
    DEBOUNCE_DELAY_SECONDS,
    NS_SYSTEM_ALL,
    QUEUE_TIMEOUT_SECONDS,
    REVERT_DELAY_SECONDS,
)
from meross_controller.correlation import correlation_context
from meross_controller.debounce import DebounceGate
from meross_controller.exceptions import (
    CommandTimeoutError,
    HubStatusError,
    ProtocolFailureError,
    is_unreachable,
    parse_error,
)
from meross_controller.logging_abstraction import get_logger
from meross_controller.structs import (
    Characteristic,
    CharacteristicCache,
    CommandPayload,
    CommandResponse,
    StatusDigest,
    StatusPayload,
    SystemInfo,
    WriteIntent,
)

if TYPE_CHECKING:
    from meross_controller.interfaces import AdaptiveLightingController, CharacteristicService, Platform
    from meross_controller.structs import DeviceAccessory

logger = get_logger(__name__)

WriteHandler = Callable[[Any], Awaitable[None]]


class MerossDevice:
    """One physical appliance as seen by the hub.

    Owns the characteristic cache, the command queue and the debounce gate of
    the device. Subclasses provide the write handlers, payload construction and
    `apply_update` digest merge.
    """

    lp: str = "MerossDevice:"
    # digest keys that make a pushed payload worth merging
    push_keys: ClassVar[tuple[str, ...]] = ()

    def __init__(
        self,
        platform: Platform,
        accessory: DeviceAccessory,
        hub: CharacteristicService,
        *,
        adaptive_lighting: AdaptiveLightingController | None = None,
    ) -> None:
        self.platform: Platform = platform
        self.accessory: DeviceAccessory = accessory
        self.hub: CharacteristicService = hub
        self.adaptive_lighting: AdaptiveLightingController | None = adaptive_lighting
        self.name: str = accessory.name
        self.device_id: str = accessory.device_id
        self.channel: int = accessory.channel
        self.lp = f"{type(self).__name__}:{self.name}:"
        self.enable_logging: bool = accessory.enable_logging
        self.enable_debug_logging: bool = accessory.enable_debug_logging

        self.debounce_delay: float = DEBOUNCE_DELAY_SECONDS
        self.revert_delay: float = REVERT_DELAY_SECONDS

        # Stops polls from reading a value mid-write; cleared when the queue drains
        self.update_in_progress: bool = False
        self.queue: CommandQueue = CommandQueue(
            interval=self.queue_interval,
            timeout=QUEUE_TIMEOUT_SECONDS,
            on_idle=self._on_queue_idle,
            name=self.name,
        )
        self.debouncer: DebounceGate = DebounceGate()
        self.cache: CharacteristicCache = self._seed_cache()

        self._poll_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()

    # -- configuration -------------------------------------------------------

    @property
    def queue_interval(self) -> float:
        return self.platform.config.push_rate

    @property
    def poll_interval(self) -> float:
        """Seconds between periodic polls; 0 disables periodic polling."""
        if self.accessory.connection != "local":
            return self.platform.config.cloud_refresh_rate
        return self.platform.config.refresh_rate

    @property
    def status_namespace(self) -> str:
        return NS_SYSTEM_ALL

    def _seed_cache(self) -> CharacteristicCache:
        return CharacteristicCache()

    def _hub_value(self, characteristic: Characteristic, default: Any) -> Any:
        value = self.hub.get_value(characteristic)
        return default if value is None else value

    def namespace_for(self, characteristic: Characteristic) -> str:
        raise NotImplementedError

    def write_handlers(self) -> dict[Characteristic, WriteHandler]:
        raise NotImplementedError

    def apply_update(self, digest: StatusDigest) -> None:
        """Merge a status digest into the cache, pushing only changed fields to the hub."""
        raise NotImplementedError

    # -- logging helpers -----------------------------------------------------

    def _log_state(self, msg: str, *args: object) -> None:
        if self.enable_logging:
            logger.info("%s " + msg, self.lp, *args)

    def _log_context(
        self,
        characteristic: Characteristic | None = None,
        namespace: str | None = None,
    ) -> dict[str, object]:
        context: dict[str, object] = {"device_id": self.device_id}
        if characteristic is not None:
            context["characteristic"] = characteristic.value
        if namespace is not None:
            context["namespace"] = namespace
        return context

    def _log_debug(self, msg: str, *args: object) -> None:
        # Per-device debug logging promotes these lines to info
        if self.enable_debug_logging:
            logger.info("%s " + msg, self.lp, *args)
        else:
            logger.debug("%s " + msg, self.lp, *args)

    # -- lifecycle -----------------------------------------------------------

    def start(self) -> None:
        """Request a first update now and start periodic polling if enabled."""
        self._spawn(self.request_update(first_run=True))
        if self.poll_interval > 0 and self._poll_task is None:
            self._poll_task = asyncio.create_task(self._poll_loop())
        opts = json.dumps(
            {
                "connection": self.accessory.connection,
                "logging": "debug" if self.enable_debug_logging else "standard" if self.enable_logging else "disable",
                "poll_interval": self.poll_interval,
            }
        )
        logger.info("%s initialised with options %s", self.lp, opts)

    async def stop(self) -> None:
        """Cancel polling, pending reverts and queued commands."""
        tasks = list(self._background)
        if self._poll_task is not None:
            tasks.append(self._poll_task)
            self._poll_task = None
        for task in tasks:
            task.cancel()
        if tasks:
            _ = await asyncio.gather(*tasks, return_exceptions=True)
        self.debouncer.cancel_all()
        await self.queue.close()

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.request_update()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _on_queue_idle(self) -> None:
        self.update_in_progress = False

    # -- write pipeline ------------------------------------------------------

    async def handle_write(self, intent: WriteIntent) -> None:
        """Route a hub write intent to its characteristic handler.

        Raises:
            HubStatusError: the device write failed

        """
        handler = self.write_handlers().get(intent.characteristic)
        if handler is None:
            logger.debug("%s ignoring write for unsupported characteristic %s", self.lp, intent.characteristic)
            return
        await handler(intent.value)

    async def _update_characteristic(
        self,
        characteristic: Characteristic,
        *,
        is_noop: Callable[[], bool],
        send: Callable[[], Awaitable[None]],
        revert_value: Callable[[], Any],
        also_revert: Mapping[Characteristic, Callable[[], Any]] | None = None,
    ) -> None:
        """Run one write intent through debounce, queue, send and commit/revert.

        Args:
            characteristic: Debounce key and revert target
            is_noop: True when the target already matches the cache (or must be dropped)
            send: Builds the payload, sends it and commits the cache on success
            revert_value: Last good hub value, read when the revert fires
            also_revert: Other characteristics the hub changed alongside this one

        """
        with correlation_context():
            if is_noop():
                return

            if not await self.debouncer.debounce(characteristic, self.debounce_delay):
                metrics.record_debounce_superseded(self.device_id, characteristic)
                return

            async def _task() -> None:
                # The cache may have moved while this write waited its turn
                if is_noop():
                    return
                self.update_in_progress = True
                await send()

            try:
                await self.queue.submit(_task)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._handle_write_failure(characteristic, e, revert_value, also_revert)
                raise HubStatusError() from e

    async def _send(self, command: CommandPayload) -> CommandResponse:
        """Send a command and validate the response header."""
        logger.debug("%s sending %s", self.lp, command.namespace, extra=self._log_context(namespace=command.namespace))
        start = time.perf_counter()
        try:
            result = await self.platform.send_update(self.accessory, command)
        except asyncio.CancelledError:
            raise
        except Exception:
            metrics.record_command(self.device_id, command.namespace, "failed")
            raise

        response = CommandResponse.from_result(result)
        if not response.success:
            metrics.record_command(self.device_id, command.namespace, "error")
            raise ProtocolFailureError(response.error_detail)

        metrics.record_command(self.device_id, command.namespace, "ok")
        metrics.record_command_latency(self.device_id, time.perf_counter() - start)
        return response

    def _handle_write_failure(
        self,
        characteristic: Characteristic,
        err: Exception,
        revert_value: Callable[[], Any],
        also_revert: Mapping[Characteristic, Callable[[], Any]] | None = None,
    ) -> None:
        namespace = self.namespace_for(characteristic)
        if isinstance(err, CommandTimeoutError):
            metrics.record_command(self.device_id, namespace, "timeout")
        logger.warning(
            "%s sending update failed as %s",
            self.lp,
            parse_error(err),
            extra=self._log_context(characteristic, namespace),
        )
        metrics.record_revert(self.device_id, characteristic)
        self.push_later(characteristic, revert_value)
        for other, other_value in (also_revert or {}).items():
            self.push_later(other, other_value)

    def push_later(self, characteristic: Characteristic, value: Callable[[], Any], delay: float | None = None) -> None:
        """Push a value to the hub after a delay (revert delay by default)."""
        wait = self.revert_delay if delay is None else delay

        async def _push() -> None:
            await asyncio.sleep(wait)
            self.hub.update_value(characteristic, value())

        _ = self._spawn(_push())

    # -- poll / reconcile ----------------------------------------------------

    async def request_update(self, first_run: bool = False) -> None:
        """Poll the device and reconcile its state; skipped while an update is in progress."""
        if self.update_in_progress:
            metrics.record_poll(self.device_id, "skipped")
            return

        with correlation_context():
            try:
                await self.queue.submit(lambda: self._poll(first_run))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._handle_poll_failure(e, first_run)

    async def _poll(self, first_run: bool) -> None:
        self.update_in_progress = True
        result = await self.platform.request_update(self.accessory, self.status_namespace)
        data = result.get("data") if isinstance(result, Mapping) else None
        self._log_debug("incoming poll message %s", json.dumps(data, default=str))
        if not isinstance(data, Mapping):
            raise ProtocolFailureError("poll response without data")

        payload = data.get("payload")
        status = StatusPayload.model_validate(payload if isinstance(payload, Mapping) else {})

        needs_update = False
        reported_online: bool | None = None
        if status.all is not None:
            if status.all.digest is not None:
                self.apply_update(status.all.digest)
            system = status.all.system
            if system is not None:
                needs_update = self._reconcile_system(system, first_run)
                if system.online is not None and system.online.status is not None:
                    reported_online = system.online.status == 1
        elif status.online is not None and status.online.status is not None:
            reported_online = status.online.status == 1

        # A successful poll without an explicit status means the device is reachable
        if self._set_online(True if reported_online is None else reported_online):
            needs_update = True

        if needs_update or first_run:
            self.platform.update_accessory(self.accessory)
        metrics.record_poll(self.device_id, "ok")

    def _reconcile_system(self, system: SystemInfo, first_run: bool) -> bool:
        """Capture identity on the first poll and track IP drift; True if context changed."""
        needs_update = False
        if first_run and system.hardware is not None:
            if system.hardware.mac_address:
                self.accessory.mac_address = system.hardware.mac_address.upper()
            self.accessory.hardware = system.hardware.version

        if system.firmware is not None:
            inner_ip = system.firmware.inner_ip
            if inner_ip and self.accessory.ip_address != inner_ip:
                logger.info("%s ip address changed from %s to %s", self.lp, self.accessory.ip_address, inner_ip)
                self.accessory.ip_address = inner_ip
                needs_update = True
            if first_run:
                self.accessory.firmware = system.firmware.version
        return needs_update

    def _set_online(self, online: bool) -> bool:
        metrics.record_online_state(self.device_id, online)
        if self.accessory.is_online == online:
            return False
        self.accessory.is_online = online
        logger.info("%s device is now %s", self.lp, "online" if online else "offline")
        return True

    def _handle_poll_failure(self, err: Exception, first_run: bool) -> None:
        metrics.record_poll(self.device_id, "failed")
        if self.enable_debug_logging:
            logger.warning(
                "%s failed to refresh status as %s",
                self.lp,
                parse_error(err),
                extra=self._log_context(namespace=self.status_namespace),
            )

        if (self.accessory.is_online or first_run) and is_unreachable(err):
            self.accessory.is_online = False
            metrics.record_online_state(self.device_id, False)
            self.platform.update_accessory(self.accessory)

    # -- push ----------------------------------------------------------------

    def receive_update(self, message: Mapping[str, Any]) -> None:
        """Merge a device-originated push through the same path as a poll digest."""
        try:
            self._log_debug("incoming push message %s", json.dumps(message, default=str))
            payload = message.get("payload")
            if not isinstance(payload, Mapping) or not any(key in payload for key in self.push_keys):
                return
            self.apply_update(StatusDigest.model_validate(payload))
        except Exception as e:  # noqa: BLE001
            logger.warning("%s failed to apply pushed update as %s", self.lp, parse_error(e))
