"""Supabase-backed remote look store."""

import logging
from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from lookbook.domain.errors import RemoteDeleteError, RemoteError, RemoteWriteError
from lookbook.domain.looks import Look, LookKind
from lookbook.services.looks import RemoteLookStore

logger = logging.getLogger(__name__)

_NOT_FOUND_STATUSES = {404, "404"}


@dataclass
class SupabaseLookStore(RemoteLookStore):
    """Look metadata in a table, image bytes in a storage bucket."""

    client: Client
    table: str = "looks"
    bucket: str = "looks"

    def save_look(self, user_id: str, look: Look) -> Look:
        """Upload the payload, then write the metadata row."""
        if look.payload is None:
            raise RemoteWriteError(f"Look {look.id} has no inline image to upload")
        path = blob_path(user_id, look.id, look.payload.extension)
        bucket = self.client.storage.from_(self.bucket)
        try:
            bucket.upload(
                path,
                look.payload.data,
                file_options={"content-type": look.payload.mime_type, "upsert": "true"},
            )
            image_url = bucket.get_public_url(path)
        except Exception as exc:
            raise RemoteWriteError(f"Failed to upload image for look {look.id}") from exc

        try:
            response = (
                self.client.table(self.table)
                .upsert(
                    {
                        "id": look.id,
                        "user_id": user_id,
                        "label": look.label,
                        "kind": str(look.kind),
                        "image_url": image_url,
                        "storage_path": path,
                        "client_created_at": look.created_at.isoformat(),
                    }
                )
                .execute()
            )
        except Exception as exc:
            raise RemoteWriteError(f"Failed to write metadata for look {look.id}") from exc
        if not response.data:
            raise RemoteWriteError(f"Failed to write metadata for look {look.id}")
        return _parse_look(response.data[0])

    def delete_look(self, user_id: str, look_id: str, blob_ref: str | None = None) -> None:
        """Delete the metadata row, then the blob.

        Without a known blob reference the conventional path is tried; a
        missing object counts as deleted.
        """
        try:
            (
                self.client.table(self.table)
                .delete()
                .eq("user_id", user_id)
                .eq("id", look_id)
                .execute()
            )
        except Exception as exc:
            raise RemoteDeleteError(f"Failed to delete metadata for look {look_id}") from exc

        path = blob_ref or blob_path(user_id, look_id)
        try:
            self.client.storage.from_(self.bucket).remove([path])
        except Exception as exc:
            if _is_not_found(exc):
                logger.info("Blob %s already absent", path)
                return
            raise RemoteDeleteError(f"Failed to delete image for look {look_id}") from exc

    def list_looks(self, user_id: str) -> list[Look]:
        """Return the user's looks, newest first by server timestamp."""
        try:
            response = (
                self.client.table(self.table)
                .select(
                    "id, user_id, label, kind, image_url, storage_path, "
                    "created_at, client_created_at"
                )
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as exc:
            raise RemoteError(f"Failed to list looks for user {user_id}") from exc
        return [_parse_look(row) for row in response.data or []]


def blob_path(user_id: str, look_id: str, extension: str = "jpg") -> str:
    """Return the conventional bucket path for a look image."""
    return f"{user_id}/{look_id}.{extension}"


def _parse_look(row: dict[str, object]) -> Look:
    created_raw = row.get("client_created_at") or row.get("created_at")
    return Look(
        id=str(row["id"]),
        kind=LookKind(str(row["kind"])),
        label=str(row.get("label", "")),
        created_at=datetime.fromisoformat(str(created_raw)),
        payload=None,
        image_url=str(row["image_url"]) if row.get("image_url") else None,
        remote_blob_ref=str(row["storage_path"]) if row.get("storage_path") else None,
    )


def _is_not_found(exc: Exception) -> bool:
    for attribute in ("status", "status_code", "statusCode"):
        if getattr(exc, attribute, None) in _NOT_FOUND_STATUSES:
            return True
    return "not found" in str(exc).lower()
