"""Destinations and the dual-destination writer.

Every asset pipeline writes through a single DualSink holding the list of
destination roots (the staging build folder and the live theme folder).
Each write is attempted on every destination independently: a failure on
one root never stops the write to the others, but it is reported so the
owning task fails.

Usage:
    from fabrica.sink import DualSink, LocalDestination

    sink = DualSink([LocalDestination('dev/build'),
                     LocalDestination('www/wordpress/wp-content/themes/x')])
    result = sink.write('css/main.css', b'body{}')
    result.raise_for_errors()
"""

import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

from doit.dependency import get_file_md5

from .exceptions import SinkError
from .logging import get_logger

logger = get_logger('sink')


@dataclass
class DestinationStat:
    """Cheap metadata about a written destination file."""
    timestamp: float
    size: int


class Destination(ABC):
    """Base class for output roots.

    Paths passed to a destination are always relative, POSIX style
    (``css/main.css``).
    """

    @abstractmethod
    def get_key(self) -> str:
        """Return a unique key for this destination root."""
        pass

    @abstractmethod
    def write(self, relative_path: str, content: bytes) -> None:
        """Replace the file at relative_path with content."""
        pass

    @abstractmethod
    def stat(self, relative_path: str) -> Optional[DestinationStat]:
        """Return metadata for relative_path, or None if it doesn't exist."""
        pass

    @abstractmethod
    def md5(self, relative_path: str) -> str:
        """Return the md5 hex digest of the stored content."""
        pass

    @abstractmethod
    def read(self, relative_path: str) -> bytes:
        pass

    def ensure_dir(self, relative_path: str) -> None:
        """Make sure a directory exists. Idempotent."""
        pass

    @abstractmethod
    def clean(self) -> None:
        """Remove everything under this root. Missing roots are fine."""
        pass

    def __str__(self) -> str:
        return self.get_key()


def _read_umask() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return umask


# Read once at import: os.umask() sets the mask process-wide
FILE_MODE = 0o666 & ~_read_umask()


class LocalDestination(Destination):
    """A directory on the local filesystem.

    Writes go through a temporary file in the target directory followed
    by ``os.replace`` so readers never see a partially written file.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"LocalDestination({str(self.root)!r})"

    def get_key(self) -> str:
        return str(self.root.resolve())

    def path(self, relative_path: str) -> Path:
        return self.root / relative_path

    def write(self, relative_path: str, content: bytes) -> None:
        target = self.path(relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix='.fabrica-')
        try:
            with os.fdopen(fd, 'wb') as tmp:
                tmp.write(content)
            os.chmod(tmp_name, FILE_MODE)
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def stat(self, relative_path: str) -> Optional[DestinationStat]:
        try:
            st = self.path(relative_path).stat()
        except OSError:
            return None
        return DestinationStat(timestamp=st.st_mtime, size=st.st_size)

    def md5(self, relative_path: str) -> str:
        return get_file_md5(self.path(relative_path))

    def read(self, relative_path: str) -> bytes:
        return self.path(relative_path).read_bytes()

    def ensure_dir(self, relative_path: str) -> None:
        self.path(relative_path).mkdir(parents=True, exist_ok=True)

    def clean(self) -> None:
        if self.root.exists():
            shutil.rmtree(self.root)


class S3Destination(Destination):
    """Objects under a prefix of an S3 bucket.

    Requires boto3 (lazy import). Change detection uses the object ETag,
    which is the md5 of the content for single-part uploads.

    Example:
        S3Destination('assets-bucket', 'themes/my-theme/')
    """

    def __init__(self, bucket: str, prefix: str = '',
                 profile: Optional[str] = None, region: Optional[str] = None):
        self.bucket = bucket
        self.prefix = prefix if not prefix or prefix.endswith('/') else prefix + '/'
        self.profile = profile
        self.region = region
        self._client: Any = None

    def __repr__(self) -> str:
        return f"S3Destination({self.bucket!r}, {self.prefix!r})"

    def _get_client(self):
        """Lazy-load boto3 and create S3 client."""
        if self._client is None:
            try:
                import boto3
            except ImportError:
                raise ImportError(
                    "boto3 required for S3Destination. Install: pip install boto3"
                )
            session_kwargs = {}
            if self.profile:
                session_kwargs['profile_name'] = self.profile
            if self.region:
                session_kwargs['region_name'] = self.region
            self._client = boto3.Session(**session_kwargs).client('s3')
        return self._client

    def _key(self, relative_path: str) -> str:
        return self.prefix + relative_path

    def get_key(self) -> str:
        return f"s3://{self.bucket}/{self.prefix}"

    def write(self, relative_path: str, content: bytes) -> None:
        self._get_client().put_object(
            Bucket=self.bucket, Key=self._key(relative_path), Body=content
        )

    def _head(self, relative_path: str):
        from botocore.exceptions import ClientError
        try:
            return self._get_client().head_object(
                Bucket=self.bucket, Key=self._key(relative_path)
            )
        except ClientError:
            return None

    def stat(self, relative_path: str) -> Optional[DestinationStat]:
        resp = self._head(relative_path)
        if resp is None:
            return None
        return DestinationStat(
            timestamp=resp['LastModified'].timestamp(),
            size=resp['ContentLength'],
        )

    def md5(self, relative_path: str) -> str:
        resp = self._head(relative_path)
        if resp is None:
            return ''
        return resp['ETag'].strip('"')

    def read(self, relative_path: str) -> bytes:
        resp = self._get_client().get_object(
            Bucket=self.bucket, Key=self._key(relative_path)
        )
        return resp['Body'].read()

    def clean(self) -> None:
        client = self._get_client()
        paginator = client.get_paginator('list_objects_v2')
        for page in paginator.paginate(Bucket=self.bucket, Prefix=self.prefix):
            keys = [{'Key': obj['Key']} for obj in page.get('Contents', [])]
            if keys:
                client.delete_objects(Bucket=self.bucket, Delete={'Objects': keys})


@dataclass
class WriteResult:
    """Outcome of writing one file to every destination.

    Attributes:
        path: Destination-relative path that was written
        written: Keys of destinations that received the content
        errors: (destination key, exception) for each failed destination
    """
    path: str
    written: List[str] = field(default_factory=list)
    errors: List[Tuple[str, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Return True if every destination received the write."""
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise SinkError if any destination failed."""
        if self.errors:
            roots = ', '.join(key for key, _ in self.errors)
            raise SinkError(f"failed to write '{self.path}' to {roots}", self.errors)


class DualSink:
    """Write identical content to a list of destination roots."""

    def __init__(self, destinations: Sequence[Destination]):
        if not destinations:
            raise ValueError("DualSink needs at least one destination")
        self.destinations: List[Destination] = list(destinations)

    @classmethod
    def from_roots(cls, roots: Sequence[Union[str, Path]]) -> 'DualSink':
        """Create a sink writing to local directories."""
        return cls([LocalDestination(root) for root in roots])

    @property
    def roots(self) -> List[str]:
        return [dest.get_key() for dest in self.destinations]

    def write(self, relative_path: str, content: Union[bytes, str]) -> WriteResult:
        """Write content to relative_path under every destination.

        Each destination is attempted even if an earlier one failed.

        Returns:
            WriteResult listing successes and failures
        """
        if isinstance(content, str):
            content = content.encode('utf-8')
        relative_path = Path(relative_path).as_posix()

        result = WriteResult(path=relative_path)
        for dest in self.destinations:
            try:
                dest.write(relative_path, content)
            except Exception as e:
                logger.error("write '%s' to %s failed: %s", relative_path, dest, e)
                result.errors.append((dest.get_key(), e))
            else:
                result.written.append(dest.get_key())
        logger.debug("wrote %s (%d bytes) to %d root(s)",
                     relative_path, len(content), len(result.written))
        return result

    def ensure_dir(self, relative_path: str) -> None:
        """Make sure relative_path exists as a directory in every root."""
        for dest in self.destinations:
            dest.ensure_dir(relative_path)

    def clean(self) -> None:
        """Remove every destination root."""
        for dest in self.destinations:
            logger.debug("cleaning %s", dest)
            dest.clean()
