"""
Attachment payload storage.

A provider turns raw bytes into a `StoredPayload` descriptor that is persisted
on the attachment row, and can later read or remove the payload given that
row. `AttachmentStorageService` picks the provider for an existing row from
its `storage_provider` tag, so rows written by any registered provider stay
readable after the default changes.
"""
from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from crm.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class StorageRecord(Protocol):
    """The payload columns of a persisted attachment."""

    data: str
    storage_provider: Optional[str]
    storage_reference: Optional[str]
    storage_url: Optional[str]


@dataclass(frozen=True)
class StoredPayload:
    data: str
    storage_provider: Optional[str] = None
    storage_reference: Optional[str] = None
    storage_url: Optional[str] = None


class AttachmentStorageProvider(Protocol):
    provider_name: str

    def store(self, payload: bytes) -> StoredPayload: ...

    def read(self, record: StorageRecord) -> bytes: ...

    def remove(self, record: StorageRecord) -> None: ...


class DatabaseAttachmentStorageProvider:
    """Keeps the payload base64-encoded in the attachment row itself."""

    provider_name = "database"

    def store(self, payload: bytes) -> StoredPayload:
        return StoredPayload(
            data=base64.b64encode(payload).decode("ascii"),
            storage_provider=self.provider_name,
        )

    def read(self, record: StorageRecord) -> bytes:
        try:
            return base64.b64decode(record.data or "", validate=True)
        except (binascii.Error, ValueError) as e:
            raise StorageError(f"Inline payload is not valid base64: {e}")

    def remove(self, record: StorageRecord) -> None:
        # Payload goes away together with the row.
        return None


class AttachmentStorageService:
    def __init__(
        self,
        default: AttachmentStorageProvider | None = None,
        providers: Iterable[AttachmentStorageProvider] = (),
    ):
        self.default = default or DatabaseAttachmentStorageProvider()
        self._providers: dict[str, AttachmentStorageProvider] = {self.default.provider_name: self.default}
        for provider in providers:
            self.register(provider)

    def register(self, provider: AttachmentStorageProvider) -> None:
        self._providers[provider.provider_name] = provider

    @property
    def provider_names(self) -> list[str]:
        return sorted(self._providers)

    def provider_for(self, record: StorageRecord) -> AttachmentStorageProvider:
        """
        Resolve the provider that owns `record`.

        Untagged rows predate provider tagging and belong to the default.
        """
        name = record.storage_provider
        if not name:
            return self.default
        provider = self._providers.get(name)
        if provider is None:
            raise StorageError(f"No storage provider registered under '{name}'")
        return provider

    def store_payload(self, payload: bytes) -> StoredPayload:
        return self.default.store(payload)

    def read_payload(self, record: StorageRecord) -> bytes:
        return self.provider_for(record).read(record)

    def delete_payload(self, record: StorageRecord) -> None:
        self.provider_for(record).remove(record)
