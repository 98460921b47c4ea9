"""MQTT change notices for the live tally feed.

Every successful increment publishes a small notice on a shared topic.
Subscribers treat a notice only as a hint to re-read the collection; it
carries no counts.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from tokenvote.config import TokenVoteConfig
from tokenvote.models.tally import VoteField

NoticeListener = Callable[["ChangeNotice"], None]


@dataclass(frozen=True)
class ChangeNotice:
    """A tally document changed."""

    address: str
    field: VoteField
    ts: int

    @classmethod
    def now(cls, address: str, field: VoteField) -> ChangeNotice:
        return cls(address=address, field=field, ts=int(time.time() * 1000))


def encode_notice(notice: ChangeNotice) -> bytes:
    body = {"address": notice.address, "field": notice.field.value, "ts": notice.ts}
    return json.dumps(body, separators=(",", ":")).encode("utf-8")


def decode_notice(payload: bytes) -> ChangeNotice:
    """Parse a notice payload.

    Raises
    ------
    ValueError
        If the payload is not a JSON object with a usable address and field.
    """
    parsed = json.loads(payload.decode("utf-8"))
    if not isinstance(parsed, dict):
        raise ValueError("Notice payload is not a JSON object")
    address = parsed.get("address")
    if not isinstance(address, str) or not address.strip():
        raise ValueError("Notice payload missing address")
    field = VoteField(parsed.get("field"))
    ts_raw = parsed.get("ts")
    if isinstance(ts_raw, bool) or not isinstance(ts_raw, (int, float)):
        ts = 0
    elif isinstance(ts_raw, float) and not math.isfinite(ts_raw):
        raise ValueError("Notice timestamp is not finite")
    else:
        ts = int(ts_raw)
    return ChangeNotice(address=address.strip(), field=field, ts=ts)


class TallyNoticeRuntime:
    """Threaded paho-mqtt runtime that hands notices to listeners on an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        topic: str,
        keepalive: int = 60,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._topic = topic
        self._keepalive = keepalive
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._listeners: list[NoticeListener] = []

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    @property
    def topic(self) -> str:
        return self._topic

    def add_listener(self, listener: NoticeListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def start(
        self,
        host: str,
        port: int,
        *,
        username: str | None = None,
        password: str | None = None,
        tls: bool = False,
    ) -> None:
        """Connect and subscribe to the notice topic (blocking connect)."""
        self.stop()
        self._logger.debug("MQTT runtime start requested host=%s port=%s topic=%s", host, port, self._topic)

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if username:
            client.username_pw_set(username, password)
        if tls:
            client.tls_set()

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected, subscribing topic=%s", self._topic)
            c.subscribe(self._topic, qos=1)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._handle_message(msg.topic, msg.payload)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect(host, port, keepalive=self._keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def publish(self, notice: ChangeNotice) -> bool:
        """Publish *notice*; returns ``False`` when the runtime is not running."""
        client = self._client
        if client is None or not self._running:
            return False
        info = client.publish(self._topic, encode_notice(notice), qos=1)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._logger.debug("MQTT publish failed rc=%s", info.rc)
            return False
        return True

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def _handle_message(self, topic: str, payload: bytes) -> None:
        # Runs on the paho network thread; an escaping error would end that thread.
        try:
            notice = decode_notice(payload)
            self._logger.debug("Received notice topic=%s address=%s", topic, notice.address)
            self._loop.call_soon_threadsafe(self._dispatch, notice)
        except Exception:
            self._logger.debug("MQTT notice parse failure topic=%s", topic, exc_info=True)

    def _dispatch(self, notice: ChangeNotice) -> None:
        for listener in list(self._listeners):
            try:
                listener(notice)
            except Exception:
                self._logger.debug("Notice listener failed", exc_info=True)


async def start_notice_runtime(
    config: TokenVoteConfig,
    loop: asyncio.AbstractEventLoop,
    logger: logging.Logger | None = None,
) -> TallyNoticeRuntime | None:
    """Best-effort runtime startup; ``None`` when disabled or unreachable."""
    log = logger or logging.getLogger(__name__)
    if not config.mqtt_active or config.mqtt_host is None:
        return None
    runtime = TallyNoticeRuntime(
        loop=loop,
        topic=config.notice_topic,
        keepalive=config.mqtt_keepalive,
        logger=log,
    )
    host = config.mqtt_host
    try:
        await loop.run_in_executor(
            None,
            lambda: runtime.start(
                host,
                config.mqtt_port,
                username=config.mqtt_username,
                password=config.mqtt_password,
                tls=config.mqtt_tls,
            ),
        )
    except Exception:
        log.warning("MQTT change notices unavailable; relying on polling", exc_info=True)
        return None
    return runtime
