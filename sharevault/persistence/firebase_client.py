"""
Firebase Admin bootstrap for the Firestore vault store.

Local runs must point at the Firestore emulator: a developer laptop holding
production credentials would otherwise write real vault state. Set
ALLOW_PROD_FIRESTORE=1 to opt out deliberately.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Mapping, Optional

import firebase_admin
import google.auth
from firebase_admin import credentials, firestore
from google.auth.exceptions import DefaultCredentialsError
from pydantic import BaseModel, ConfigDict

from sharevault.common.logging import log_event

logger = logging.getLogger(__name__)

_CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
_init_lock = threading.Lock()


class FirestoreAccessDenied(RuntimeError):
    """Local execution tried to reach production Firestore."""


class FirestoreSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    project_id: Optional[str] = None
    emulator_host: Optional[str] = None
    allow_prod: bool = False
    # Cloud Run sets K_SERVICE (services) or CLOUD_RUN_JOB (jobs).
    managed_runtime: bool = False

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "FirestoreSettings":
        e = os.environ if env is None else env

        def _get(name: str) -> Optional[str]:
            v = str(e.get(name) or "").strip()
            return v or None

        return cls(
            project_id=_get("FIREBASE_PROJECT_ID") or _get("GOOGLE_CLOUD_PROJECT"),
            emulator_host=_get("FIRESTORE_EMULATOR_HOST"),
            allow_prod=_get("ALLOW_PROD_FIRESTORE") == "1",
            managed_runtime=(_get("ENV") or "").lower() != "local" and bool(_get("K_SERVICE") or _get("CLOUD_RUN_JOB")),
        )

    def check_target(self, *, caller: str) -> None:
        if self.managed_runtime or self.emulator_host or self.allow_prod:
            return
        raise FirestoreAccessDenied(
            f"{caller}: refusing to use production Firestore for vault state from a local run; "
            "set FIRESTORE_EMULATOR_HOST (e.g. 127.0.0.1:8080) or ALLOW_PROD_FIRESTORE=1"
        )


def init_firebase_admin(settings: Optional[FirestoreSettings] = None) -> None:
    """Initialize the default Firebase app once per process with Application Default Credentials."""
    s = settings or FirestoreSettings.from_env()
    s.check_target(caller="init_firebase_admin")

    with _init_lock:
        if firebase_admin._apps:
            return
        try:
            cred = credentials.ApplicationDefault()
        except DefaultCredentialsError as e:
            raise RuntimeError(
                "Application Default Credentials unavailable; run `gcloud auth application-default login`"
            ) from e

        project_id = s.project_id
        if not project_id:
            try:
                _, project_id = google.auth.default(scopes=[_CLOUD_PLATFORM_SCOPE])
            except DefaultCredentialsError:
                project_id = None
        if not project_id:
            raise RuntimeError("Firestore project id unresolved; set FIREBASE_PROJECT_ID")

        firebase_admin.initialize_app(cred, {"projectId": project_id})
        log_event(
            logger,
            "vault.firestore_initialized",
            project_id=project_id,
            emulator=bool(s.emulator_host),
        )


def get_firestore_client(settings: Optional[FirestoreSettings] = None):
    init_firebase_admin(settings)
    return firestore.client()
