from __future__ import annotations

import json
import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from sql_unify.config.settings import Settings
from sql_unify.exceptions.errors import StorageError
from sql_unify.logging.logger import get_logger

log = get_logger("storage.source_store")

MANIFEST = "manifest.json"

SourcePair = Tuple[str, bytes]

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def _object_names(count: int) -> List[str]:
    # A fresh generation per save, so a half-written save never touches the live set.
    generation = uuid.uuid4().hex[:12]
    return [f"source_{generation}_{i:04d}.db" for i in range(count)]


def _parse_manifest(raw: bytes) -> List[Dict[str, str]]:
    try:
        payload = json.loads(raw.decode("utf-8"))
        entries = payload["sources"]
    except (ValueError, KeyError, TypeError) as e:
        raise StorageError("Source manifest is unreadable") from e
    if not isinstance(entries, list) or not all(isinstance(e, dict) and "name" in e and "object" in e for e in entries):
        raise StorageError("Source manifest entries are malformed")
    return entries


def _manifest_bytes(pairs: Sequence[SourcePair], objects: Sequence[str]) -> bytes:
    entries = [{"name": name, "object": obj} for (name, _), obj in zip(pairs, objects)]
    return json.dumps({"sources": entries}, indent=2).encode("utf-8")


class SourceStore(ABC):
    """Durable home for uploaded source bytes, kept in upload order."""

    @abstractmethod
    def save_sources(self, pairs: Sequence[SourcePair]) -> None:
        """Replace the stored set with pairs."""

    @abstractmethod
    def load_sources(self) -> List[SourcePair]:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class NullSourceStore(SourceStore):
    def save_sources(self, pairs: Sequence[SourcePair]) -> None:
        return None

    def load_sources(self) -> List[SourcePair]:
        return []

    def clear(self) -> None:
        return None


class LocalSourceStore(SourceStore):
    """Stores sources as files in a directory next to a manifest.json.

    New files are written first and the manifest is replaced last, so a
    failed save leaves the previously saved set loadable.
    """

    def __init__(self, root: str):
        self.root = Path(root)

    def save_sources(self, pairs: Sequence[SourcePair]) -> None:
        objects = _object_names(len(pairs))
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            for obj, (_, data) in zip(objects, pairs):
                (self.root / obj).write_bytes(data)
            staged = self.root / f"{MANIFEST}.tmp"
            staged.write_bytes(_manifest_bytes(pairs, objects))
            os.replace(staged, self.root / MANIFEST)
        except OSError as e:
            log.exception("Saving sources failed")
            self._remove_files(objects + [f"{MANIFEST}.tmp"])
            raise StorageError(f"Could not save sources under {self.root}") from e
        keep = set(objects)
        self._remove_files([p.name for p in self.root.glob("source_*.db") if p.name not in keep])
        log.info("Sources saved", extra={"dir": str(self.root), "count": len(pairs)})

    def load_sources(self) -> List[SourcePair]:
        manifest = self.root / MANIFEST
        if not manifest.exists():
            return []
        out: List[SourcePair] = []
        for entry in _parse_manifest(manifest.read_bytes()):
            path = self.root / entry["object"]
            if not path.exists():
                raise StorageError(f"Stored source '{entry['name']}' is missing its data file")
            out.append((entry["name"], path.read_bytes()))
        log.info("Sources loaded", extra={"dir": str(self.root), "count": len(out)})
        return out

    def clear(self) -> None:
        if not self.root.exists():
            return
        self._remove_files([p.name for p in self.root.glob("source_*.db")] + [MANIFEST])

    def _remove_files(self, names: Iterable[str]) -> None:
        for name in names:
            path = self.root / name
            try:
                if path.exists():
                    path.unlink()
            except OSError:
                log.warning("Could not remove stored file", extra={"path": str(path)})


class S3SourceStore(SourceStore):
    """Stores sources as objects under s3://{bucket}/{prefix}/ with a manifest.json.

    Only a missing key reads as "nothing stored"; any other S3 failure
    (credentials, permissions, network) raises StorageError.
    """

    def __init__(self, bucket: str, prefix: str, region: Optional[str] = None, client: Any = None):
        if not bucket:
            raise StorageError("S3 source storage requires STORAGE_S3_BUCKET to be set.")
        self.bucket = bucket
        self.prefix = (prefix or "").strip().strip("/")
        if client is None:
            import boto3

            client = boto3.client("s3", region_name=region or None)
        self.s3 = client

    def _key(self, name: str) -> str:
        return f"{self.prefix}/{name}" if self.prefix else name

    def _get(self, key: str) -> Optional[bytes]:
        try:
            resp = self.s3.get_object(Bucket=self.bucket, Key=key)
            return resp["Body"].read()
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_CODES:
                return None
            log.exception("S3 read failed")
            raise StorageError(f"Could not read s3://{self.bucket}/{key}: {code}") from e
        except BotoCoreError as e:
            log.exception("S3 read failed")
            raise StorageError(f"Could not read s3://{self.bucket}/{key}") from e

    def _delete(self, keys: Sequence[str]) -> None:
        try:
            for key in keys:
                self.s3.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            log.exception("S3 delete failed")
            raise StorageError("Could not delete stored sources in S3") from e

    def _stored_objects(self) -> Optional[List[str]]:
        """Object names listed by the current manifest; None when there is no manifest."""
        raw = self._get(self._key(MANIFEST))
        if raw is None:
            return None
        try:
            return [e["object"] for e in _parse_manifest(raw)]
        except StorageError:
            log.warning("Stored manifest is corrupt; only the manifest will be replaced")
            return []

    def save_sources(self, pairs: Sequence[SourcePair]) -> None:
        previous = self._stored_objects() or []
        objects = _object_names(len(pairs))
        written: List[str] = []
        try:
            for obj, (_, data) in zip(objects, pairs):
                self.s3.put_object(Bucket=self.bucket, Key=self._key(obj), Body=data)
                written.append(obj)
            self.s3.put_object(Bucket=self.bucket, Key=self._key(MANIFEST), Body=_manifest_bytes(pairs, objects))
        except (ClientError, BotoCoreError) as e:
            log.exception("S3 save failed")
            self._delete([self._key(o) for o in written])
            raise StorageError("Could not save sources to S3") from e
        self._delete([self._key(o) for o in previous if o not in objects])
        log.info("Sources saved", extra={"bucket": self.bucket, "prefix": self.prefix, "count": len(pairs)})

    def load_sources(self) -> List[SourcePair]:
        raw = self._get(self._key(MANIFEST))
        if raw is None:
            return []
        out: List[SourcePair] = []
        for entry in _parse_manifest(raw):
            data = self._get(self._key(entry["object"]))
            if data is None:
                raise StorageError(f"Stored source '{entry['name']}' is missing its S3 object")
            out.append((entry["name"], data))
        log.info("Sources loaded", extra={"bucket": self.bucket, "prefix": self.prefix, "count": len(out)})
        return out

    def clear(self) -> None:
        objects = self._stored_objects()
        if objects is None:
            return
        self._delete([self._key(o) for o in objects] + [self._key(MANIFEST)])


def source_store_for(settings: Settings) -> SourceStore:
    backend = (settings.storage_backend or "none").strip().lower()
    if backend == "local":
        return LocalSourceStore(settings.storage_local_dir)
    if backend == "s3":
        return S3SourceStore(settings.storage_s3_bucket, settings.storage_s3_prefix, region=settings.aws_region)
    return NullSourceStore()
