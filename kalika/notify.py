"""Push notification side-effect.

``Notifier.send`` makes exactly one attempt and reports the outcome instead of
raising: callers have usually committed state already and must not fail
because a push did not go out.
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

import requests

from .config import DEFAULT_NOTIFY_URL, Config

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationConfig:
    app_id: int | None = None
    app_token: str | None = None
    url: str = DEFAULT_NOTIFY_URL
    timeout_seconds: float = 5.0

    @property
    def enabled(self) -> bool:
        return bool(self.app_id and self.app_token)

    @classmethod
    def from_config(cls, cfg: Config) -> NotificationConfig:
        return cls(
            app_id=cfg.notify_app_id,
            app_token=cfg.notify_app_token,
            url=cfg.notify_url,
            timeout_seconds=cfg.notify_timeout_seconds,
        )


@dataclass
class NotificationOutcome:
    attempted: bool
    delivered: bool
    detail: Any = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class Notifier(Protocol):
    def send(self, to_uid: str, title: str, body: str, payload: dict[str, Any] | None = None) -> NotificationOutcome: ...  # pragma: no cover


class NoopNotifier:
    """Used when no push credentials are configured."""

    def send(self, to_uid: str, title: str, body: str, payload: dict[str, Any] | None = None) -> NotificationOutcome:
        return NotificationOutcome(attempted=False, delivered=False, detail="notifications not configured")


@dataclass
class NativeNotifyNotifier:
    """NativeNotify "indie" push: one device group per Firebase uid (``subId``)."""

    config: NotificationConfig
    session: requests.Session = field(default_factory=requests.Session)

    def send(self, to_uid: str, title: str, body: str, payload: dict[str, Any] | None = None) -> NotificationOutcome:
        message: dict[str, Any] = {
            "subId": to_uid,
            "appId": self.config.app_id,
            "appToken": self.config.app_token,
            "title": title,
            "message": body,
        }
        if payload:
            # NativeNotify expects pushData as a JSON string
            message["pushData"] = json.dumps(payload)
        try:
            res = self.session.post(self.config.url, json=message, timeout=self.config.timeout_seconds)
        except requests.Timeout:
            log.warning("push to uid=%s timed out after %ss", to_uid, self.config.timeout_seconds)
            return NotificationOutcome(attempted=True, delivered=False, detail="timeout")
        except requests.RequestException as e:
            log.warning("push to uid=%s failed: %s", to_uid, e)
            return NotificationOutcome(attempted=True, delivered=False, detail=type(e).__name__)
        try:
            data: Any = res.json()
        except ValueError:
            data = {}
        if not res.ok:
            log.warning("push to uid=%s rejected status=%s", to_uid, res.status_code)
        return NotificationOutcome(attempted=True, delivered=res.ok, detail=data)


def build_notifier(cfg: Config) -> Notifier:
    ncfg = NotificationConfig.from_config(cfg)
    if not ncfg.enabled:
        log.warning("NATIVE_NOTIFY_APP_ID/NATIVE_NOTIFY_APP_TOKEN not set; push notifications disabled")
        return NoopNotifier()
    return NativeNotifyNotifier(ncfg)


__all__ = [
    "NotificationConfig",
    "NotificationOutcome",
    "Notifier",
    "NoopNotifier",
    "NativeNotifyNotifier",
    "build_notifier",
]
