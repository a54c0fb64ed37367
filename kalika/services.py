"""Collaborator container attached to the Flask app.

Views never construct backends themselves; they read them from here so the
app factory (or a test) decides which identity provider, store and notifier
are live.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import Flask, current_app

from .identity import IdentityProvider
from .notify import Notifier
from .store import DocumentStore

EXTENSION_KEY = "kalika"


@dataclass
class Services:
    identity: IdentityProvider
    store: DocumentStore
    notifier: Notifier


def init_services(app: Flask, services: Services) -> None:
    app.extensions[EXTENSION_KEY] = services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]


__all__ = ["Services", "init_services", "get_services"]
